# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""Log level enumeration."""

from __future__ import annotations

import logging
from enum import Enum


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_stdlib_level(self) -> int:
        """Convert to standard library logging level."""
        return int(getattr(logging, self.value))

    @classmethod
    def from_string(cls, value: str) -> LogLevel:
        """Convert a string to a LogLevel.

        Raises:
            ValueError: If the string doesn't match a valid level
        """
        try:
            return cls(value.upper())
        except ValueError:
            raise ValueError(f"Invalid log level: {value}")
