# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.connection
Connection pool construction and health checks
"""

from __future__ import annotations

import asyncio
import re
from datetime import timedelta
from typing import Any, Final

import asyncpg

from confstore.configuration.config import ConfigurationStoreSettings, default_settings
from confstore.configuration.errors import StoreConnectionError, StorePingError

QUERY_TABLE_EXISTS: Final = (
    "SELECT EXISTS (SELECT FROM pg_tables WHERE tablename = $1)"
)
QUERY_PING: Final = "SELECT 1"

_URL_PASSWORD = re.compile(r"(://[^:/@]+:)[^@]*(@)")
_KV_PASSWORD = re.compile(r"(password=)\S+")


def obfuscate_dsn(dsn: str) -> str:
    """Mask the password in a URL or key/value DSN for logging."""
    if not dsn:
        return ""
    masked = _URL_PASSWORD.sub(r"\1****\2", dsn)
    return _KV_PASSWORD.sub(r"\1****", masked)


async def connect(
    connection_string: str,
    max_idle_time: timedelta,
    settings: ConfigurationStoreSettings | None = None,
    **pool_kwargs: Any,
) -> asyncpg.Pool:
    """Create a connection pool and verify it answers a ping.

    Pool creation is bounded by ``max_idle_time``.

    Raises:
        StoreConnectionError: If the pool cannot be created.
        StorePingError: If the new pool fails the liveness check.
    """
    settings = settings or default_settings
    timeout = max_idle_time.total_seconds()
    options: dict[str, Any] = {
        "min_size": settings.pool_min_size,
        "max_size": settings.pool_max_size,
        "max_inactive_connection_lifetime": timeout,
        "server_settings": {"application_name": settings.application_name},
    }
    options.update(pool_kwargs)

    try:
        pool = await asyncio.wait_for(
            asyncpg.create_pool(dsn=connection_string, **options), timeout
        )
    except (asyncpg.PostgresError, OSError, asyncio.TimeoutError, ValueError) as exc:
        raise StoreConnectionError(
            f"postgres configuration store connection error: {exc}",
            dsn=obfuscate_dsn(connection_string),
        ) from exc

    try:
        await ping(pool, timeout)
    except StorePingError:
        await pool.close()
        raise
    return pool


async def ping(pool: asyncpg.Pool, timeout: float | None = None) -> None:
    """Run a trivial query to make sure the pool can reach the server.

    Raises:
        StorePingError: If the query fails or times out.
    """
    try:
        await pool.fetchval(QUERY_PING, timeout=timeout)
    except (asyncpg.PostgresError, OSError, asyncio.TimeoutError) as exc:
        raise StorePingError(
            f"postgres configuration store ping error: {exc}"
        ) from exc


async def table_exists(pool: asyncpg.Pool, table: str) -> bool:
    """Check whether the configuration table exists.

    The name is folded to lower case, as PostgreSQL does for unquoted names.

    Raises:
        StoreConnectionError: If the catalog query fails.
    """
    try:
        return bool(await pool.fetchval(QUERY_TABLE_EXISTS, table.lower()))
    except (asyncpg.PostgresError, OSError) as exc:
        raise StoreConnectionError(
            f"postgres configuration store query error: {exc}", table=table
        ) from exc
