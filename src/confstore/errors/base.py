# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
Base error classes for confstore.

Errors carry a registered error code, the code's category, a severity and a
free-form context dictionary so they can be logged in structured form.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from confstore.errors.registry import registry


class ErrorSeverity(str, Enum):
    """Severity levels for errors."""

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ErrorCategory:
    """Named group of related error codes."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __str__(self) -> str:
        return self.name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ErrorCategory):
            return False
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    @classmethod
    def get_or_create(cls, name: str) -> "ErrorCategory":
        """Get or create an error category."""
        return registry.get_category(name)


class ErrorCode:
    """Error code associated with a category."""

    def __init__(self, code: str, category: ErrorCategory) -> None:
        self.code = code
        self.category = category

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ErrorCode):
            return False
        return self.code == other.code

    def __hash__(self) -> int:
        return hash(self.code)

    @classmethod
    def get_or_create(cls, name: str, category: ErrorCategory) -> "ErrorCode":
        """Get or create an error code."""
        return registry.get_code(name, category.name)


class ConfStoreError(Exception):
    """
    Base error class for confstore errors.
    Should only be subclassed for package-specific errors, not instantiated directly.
    """

    message: str
    code: ErrorCode
    severity: ErrorSeverity
    context: dict[str, Any]
    timestamp: datetime

    def __new__(cls, *args: Any, **kwargs: Any) -> "ConfStoreError":
        if cls is ConfStoreError:
            raise TypeError(
                "Do not instantiate ConfStoreError directly; subclass it for specific errors."
            )
        return super().__new__(cls)

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize a new error.

        Args:
            message: Human-readable error message
            code: ErrorCode object containing the code and category
            severity: Severity level of the error
            context: Additional contextual information
            **kwargs: Additional context keys (merged into context)
        """
        if not isinstance(code, ErrorCode):
            raise TypeError("code must be an ErrorCode instance, not a string")

        full_context = dict(context or {})
        full_context.update(kwargs)

        super().__init__(message)
        self.code = code
        self.message = message
        self.category = code.category
        self.severity = severity
        self.context = full_context
        self.timestamp = datetime.now(UTC)

    def add_context(self, key: str, value: Any) -> "ConfStoreError":
        """Add a key-value pair to the error context and return self for chaining."""
        self.context[key] = value
        return self

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Return a dictionary representation of the error."""
        return {
            "code": self.code.code,
            "message": self.message,
            "category": self.category.name,
            "severity": self.severity.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }
