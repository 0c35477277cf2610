# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
Logger factory for confstore.

Loggers are standard library loggers configured from ``LoggingSettings``
with a formatter that renders ``extra={...}`` values as structured context.
"""

from __future__ import annotations

import datetime
import enum
import json
import logging
import sys
import uuid
from logging import StreamHandler
from typing import Any

from confstore.logging.config import LoggingSettings
from confstore.logging.level import LogLevel

# Attributes present on every LogRecord; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Formatter that supports structured logging with context data."""

    def __init__(
        self,
        json_format: bool = False,
        include_timestamp: bool = True,
        include_level: bool = True,
    ) -> None:
        """Initialize a structured formatter.

        Args:
            json_format: Whether to format logs as JSON
            include_timestamp: Whether to include timestamps in logs
            include_level: Whether to include log level in logs
        """
        self.json_format = json_format
        self.include_timestamp = include_timestamp
        self.include_level = include_level

        fmt = "%(name)s: %(message)s"
        if include_timestamp:
            fmt = "%(asctime)s " + fmt
        if include_level and not json_format:
            fmt = fmt + " [%(levelname)s]"

        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }

        if self.json_format:
            return self._format_json(record, extra)
        message = super().format(record)
        return self._format_text(message, extra)

    def _format_json(self, record: logging.LogRecord, extra: dict[str, Any]) -> str:
        log_data: dict[str, Any] = {
            "message": record.getMessage(),
            "name": record.name,
        }
        log_data.update(
            {key: self._serialize_value(value) for key, value in extra.items()}
        )

        if self.include_level:
            log_data["level"] = record.levelname

        if self.include_timestamp:
            log_data["timestamp"] = self.formatTime(record, self.datefmt)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
            log_data["error"] = str(record.exc_info[1])

        return json.dumps(log_data, ensure_ascii=False)

    def _format_text(self, message: str, extra: dict[str, Any]) -> str:
        if not extra:
            return message

        ctx_str = " ".join(f"{k}={self._format_value(v)}" for k, v in extra.items())
        return f"{message} {ctx_str}"

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, datetime.datetime | datetime.date):
            return value.isoformat()
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, enum.Enum):
            return value.value
        if isinstance(value, datetime.timedelta):
            return value.total_seconds()
        if isinstance(value, BaseException):
            to_dict = getattr(value, "to_dict", None)
            if callable(to_dict):
                return self._serialize_value(to_dict())
            return str(value)
        if isinstance(value, dict):
            return {str(k): self._serialize_value(v) for k, v in value.items()}
        if isinstance(value, list | tuple | set):
            return [self._serialize_value(v) for v in value]
        if value is None or isinstance(value, str | int | float | bool):
            return value
        return str(value)

    def _format_value(self, value: Any) -> str:
        """Format a value for text output."""
        if isinstance(value, str):
            if " " in value:
                return f'"{value}"'
            return value
        serialized = self._serialize_value(value)
        if isinstance(serialized, str):
            return serialized
        try:
            return json.dumps(serialized)
        except (TypeError, ValueError):
            return str(value)


def get_logger(
    name: str,
    level: LogLevel | None = None,
    settings: LoggingSettings | None = None,
) -> logging.Logger:
    """Get a logger for the specified name.

    Args:
        name: Logger name (typically the component's dotted path)
        level: Optional log level override
        settings: Optional settings (loaded from the environment if None)

    Returns:
        Configured logger instance
    """
    settings = settings or LoggingSettings.load()
    logger = logging.getLogger(name)

    effective = level or LogLevel.from_string(settings.level)
    logger.setLevel(effective.to_stdlib_level())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = StructuredFormatter(
        json_format=settings.json_format,
        include_timestamp=settings.include_timestamp,
        include_level=settings.include_level,
    )

    if settings.console_enabled:
        console = StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if settings.file_enabled and settings.file_path:
        file_handler = logging.FileHandler(settings.file_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
