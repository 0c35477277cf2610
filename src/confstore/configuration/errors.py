# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.errors
Error definitions for the PostgreSQL configuration store
"""

from __future__ import annotations

from typing import Any, Final

from confstore.errors.base import (
    ConfStoreError,
    ErrorCategory,
    ErrorCode,
    ErrorSeverity,
)

CONFIGURATION_STORE = ErrorCategory.get_or_create("CONFIGURATION_STORE")
CONFIGURATION_STORE_ERROR: Final = ErrorCode.get_or_create(
    "CONFIGURATION_STORE_ERROR", CONFIGURATION_STORE
)
CONFIGURATION_STORE_CONFIG_ERROR: Final = ErrorCode.get_or_create(
    "CONFIGURATION_STORE_CONFIG_ERROR", CONFIGURATION_STORE
)
MISSING_CONNECTION_STRING: Final = ErrorCode.get_or_create(
    "MISSING_CONNECTION_STRING", CONFIGURATION_STORE
)
MISSING_TABLE_NAME: Final = ErrorCode.get_or_create(
    "MISSING_TABLE_NAME", CONFIGURATION_STORE
)
INVALID_TABLE_NAME: Final = ErrorCode.get_or_create(
    "INVALID_TABLE_NAME", CONFIGURATION_STORE
)
TABLE_NAME_TOO_LONG: Final = ErrorCode.get_or_create(
    "TABLE_NAME_TOO_LONG", CONFIGURATION_STORE
)
INVALID_MAX_IDLE_TIME: Final = ErrorCode.get_or_create(
    "INVALID_MAX_IDLE_TIME", CONFIGURATION_STORE
)
ALREADY_INITIALIZED: Final = ErrorCode.get_or_create(
    "ALREADY_INITIALIZED", CONFIGURATION_STORE
)
NOT_INITIALIZED: Final = ErrorCode.get_or_create(
    "NOT_INITIALIZED", CONFIGURATION_STORE
)
CONNECTION_ERROR: Final = ErrorCode.get_or_create(
    "CONNECTION_ERROR", CONFIGURATION_STORE
)
PING_ERROR: Final = ErrorCode.get_or_create("PING_ERROR", CONFIGURATION_STORE)
QUERY_ERROR: Final = ErrorCode.get_or_create("QUERY_ERROR", CONFIGURATION_STORE)
LISTEN_ERROR: Final = ErrorCode.get_or_create("LISTEN_ERROR", CONFIGURATION_STORE)
DECODE_ERROR: Final = ErrorCode.get_or_create("DECODE_ERROR", CONFIGURATION_STORE)
HANDLER_ERROR: Final = ErrorCode.get_or_create("HANDLER_ERROR", CONFIGURATION_STORE)


class ConfigurationStoreError(ConfStoreError):
    """Base class for all configuration store errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = CONFIGURATION_STORE_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize a configuration store error.

        Args:
            message: Human-readable error message
            code: Error code
            severity: How severe this error is
            context: Additional context information
            **kwargs: Additional context keys (will be merged with context)
        """
        super().__init__(
            message,
            code=code,
            severity=severity,
            context=context,
            **kwargs,
        )


class ConfigurationStoreConfigError(ConfigurationStoreError):
    """Invalid or missing store setup; fatal to initialization."""

    default_code: ErrorCode = CONFIGURATION_STORE_CONFIG_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            code=code or self.default_code,
            severity=severity,
            context=context,
            **kwargs,
        )


class MissingConnectionStringError(ConfigurationStoreConfigError):
    """The ``connectionString`` property is absent or empty."""

    default_code = MISSING_CONNECTION_STRING


class MissingTableNameError(ConfigurationStoreConfigError):
    """The ``table`` property is absent or empty."""

    default_code = MISSING_TABLE_NAME


class InvalidTableNameError(ConfigurationStoreConfigError):
    """The table name contains non-ASCII characters."""

    default_code = INVALID_TABLE_NAME


class TableNameTooLongError(ConfigurationStoreConfigError):
    """The table name exceeds PostgreSQL's identifier length limit."""

    default_code = TABLE_NAME_TOO_LONG


class InvalidMaxIdleTimeError(ConfigurationStoreConfigError):
    """``connMaxIdleTime`` is not a valid duration."""

    default_code = INVALID_MAX_IDLE_TIME


class AlreadyInitializedError(ConfigurationStoreConfigError):
    default_code = ALREADY_INITIALIZED


class StoreNotInitializedError(ConfigurationStoreConfigError):
    default_code = NOT_INITIALIZED


class StoreConnectionError(ConfigurationStoreError):
    """Error when the connection pool cannot be created."""

    default_code: ErrorCode = CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        severity: ErrorSeverity = ErrorSeverity.CRITICAL,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            code=code or self.default_code,
            severity=severity,
            context=context,
            **kwargs,
        )


class StorePingError(StoreConnectionError):
    """Error when the liveness check against a new pool fails."""

    default_code = PING_ERROR


class ConfigurationQueryError(ConfigurationStoreError):
    """Error when reading configuration items fails."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = QUERY_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            code=code,
            severity=severity,
            context=context,
            **kwargs,
        )


class ListenError(ConfigurationStoreError):
    """Error while starting or running a notification listener."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = LISTEN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            code=code,
            severity=severity,
            context=context,
            **kwargs,
        )


class NotificationDecodeError(ConfigurationStoreError):
    """A notification payload could not be decoded into an update event."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = DECODE_ERROR,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            code=code,
            severity=severity,
            context=context,
            **kwargs,
        )


class HandlerError(ConfigurationStoreError):
    """A subscriber's update handler raised."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = HANDLER_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            code=code,
            severity=severity,
            context=context,
            **kwargs,
        )
