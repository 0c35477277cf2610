# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.query
Read query assembly for configuration lookups
"""

from __future__ import annotations

from typing import Any, Mapping, NamedTuple, Sequence


class Query(NamedTuple):
    """A SQL statement with positional ($n) parameters."""

    sql: str
    params: tuple[Any, ...] = ()


def quote_identifier(name: str) -> str:
    """Quote a column name as a PostgreSQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def channel_for(table: str) -> str:
    """Notification channel for a table.

    The table appears unquoted in SQL, so PostgreSQL folds it to lower case.
    asyncpg quotes the channel in LISTEN, so the folding is done here.
    """
    return table.lower()


def build_query(
    keys: Sequence[str],
    metadata: Mapping[str, str],
    table: str,
) -> Query:
    """Build the read query for a lookup.

    Keys become an ``IN`` list and metadata entries become equality filters,
    all ANDed. Filters are emitted sorted by field name so the same input
    always yields the same statement. Values are always bound as parameters.

    Args:
        keys: Keys to select; empty selects every row.
        metadata: Column/value equality filters.
        table: The configuration table. It is interpolated unquoted, so it
            must already be validated as a plain identifier.

    Returns:
        The query and its parameters.
    """
    sql = f"SELECT * FROM {table}"
    params: list[Any] = []
    clauses: list[str] = []

    if keys:
        placeholders = []
        for key in keys:
            params.append(key)
            placeholders.append(f"${len(params)}")
        clauses.append(f"key IN ({', '.join(placeholders)})")

    for field in sorted(metadata):
        params.append(metadata[field])
        clauses.append(f"{quote_identifier(field)} = ${len(params)}")

    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    return Query(sql, tuple(params))
