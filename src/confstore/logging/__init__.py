# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore

"""
Public API for confstore logging.
"""

from __future__ import annotations

from confstore.logging.config import LoggingSettings
from confstore.logging.level import LogLevel
from confstore.logging.logger import StructuredFormatter, get_logger
from confstore.logging.protocols import LoggerProtocol

__all__ = [
    "LoggerProtocol",
    "LogLevel",
    "LoggingSettings",
    "StructuredFormatter",
    "get_logger",
]
