# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.metadata
Validation of the component properties supplied to ``init``
"""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Final, Mapping

from pydantic import BaseModel, ConfigDict, SecretStr

from confstore.configuration.config import ConfigurationStoreSettings, default_settings
from confstore.configuration.errors import (
    InvalidMaxIdleTimeError,
    InvalidTableNameError,
    MissingConnectionStringError,
    MissingTableNameError,
    TableNameTooLongError,
)
from confstore.configuration.types import Metadata

CONNECTION_STRING_KEY: Final = "connectionString"
TABLE_KEY: Final = "table"
CONN_MAX_IDLE_TIME_KEY: Final = "connMaxIdleTime"

# https://www.postgresql.org/docs/current/limits.html
MAX_IDENTIFIER_LENGTH: Final = 64

_DURATION_UNITS: Final = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
# Table names are used unquoted in SQL
_TABLE_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_$]*")


class StoreMetadata(BaseModel):
    """Validated, immutable store configuration."""

    model_config = ConfigDict(frozen=True)

    connection_string: SecretStr
    table: str
    max_idle_time: timedelta


def parse_duration(value: str) -> timedelta:
    """Parse a duration string such as ``"300ms"``, ``"1.5h"`` or ``"2h45m"``.

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = value.strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration: {value!r}")

    seconds = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration: {value!r}")
        number, unit = match.groups()
        seconds += float(number) * _DURATION_UNITS[unit]
        pos = match.end()
    try:
        return timedelta(seconds=sign * seconds)
    except OverflowError as exc:
        raise ValueError(f"duration out of range: {value!r}") from exc


def parse_metadata(
    metadata: Metadata | Mapping[str, str],
    settings: ConfigurationStoreSettings | None = None,
) -> StoreMetadata:
    """Validate component properties and produce the store configuration.

    Raises:
        MissingConnectionStringError: ``connectionString`` absent or empty
        MissingTableNameError: ``table`` absent or empty
        InvalidTableNameError: table name is not a plain ASCII identifier
        TableNameTooLongError: table name longer than 64 characters
        InvalidMaxIdleTimeError: ``connMaxIdleTime`` is not a positive duration
    """
    settings = settings or default_settings
    properties = metadata.properties if isinstance(metadata, Metadata) else metadata

    connection_string = properties.get(CONNECTION_STRING_KEY, "")
    if not connection_string:
        raise MissingConnectionStringError("missing PostgreSQL connection string")

    table = properties.get(TABLE_KEY, "")
    if not table:
        raise MissingTableNameError("missing PostgreSQL configuration table name")
    if not table.isascii():
        raise InvalidTableNameError(
            f"invalid table name: {table!r}. non-ascii characters are not supported",
            table=table,
        )
    if not _TABLE_NAME.fullmatch(table):
        raise InvalidTableNameError(
            f"invalid table name: {table!r}. only letters, digits, underscores and $ are supported",
            table=table,
        )
    if len(table) > MAX_IDENTIFIER_LENGTH:
        raise TableNameTooLongError(
            f"table name {table!r} is too long, max allowed length is {MAX_IDENTIFIER_LENGTH}",
            table=table,
            max_length=MAX_IDENTIFIER_LENGTH,
        )

    max_idle_time = settings.default_max_idle_time
    raw_idle_time = properties.get(CONN_MAX_IDLE_TIME_KEY, "")
    if raw_idle_time:
        try:
            max_idle_time = parse_duration(raw_idle_time)
        except ValueError as exc:
            raise InvalidMaxIdleTimeError(
                f"invalid {CONN_MAX_IDLE_TIME_KEY} setting: {raw_idle_time!r}",
                value=raw_idle_time,
            ) from exc
        if max_idle_time <= timedelta(0):
            raise InvalidMaxIdleTimeError(
                f"{CONN_MAX_IDLE_TIME_KEY} must be positive, got {raw_idle_time!r}",
                value=raw_idle_time,
            )

    return StoreMetadata(
        connection_string=SecretStr(connection_string),
        table=table,
        max_idle_time=max_idle_time,
    )
