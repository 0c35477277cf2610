# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.postgresql
PostgreSQL configuration store with LISTEN/NOTIFY subscriptions
"""

from __future__ import annotations

import asyncio
import json
import uuid
from types import TracebackType
from typing import Any, Mapping

import asyncpg

from confstore.configuration import connection as pg
from confstore.configuration.config import ConfigurationStoreSettings, default_settings
from confstore.configuration.errors import (
    AlreadyInitializedError,
    ConfigurationQueryError,
    ConfigurationStoreConfigError,
    StoreConnectionError,
    StoreNotInitializedError,
)
from confstore.configuration.listener import CONNECTION_ERRORS, NotificationListener
from confstore.configuration.metadata import StoreMetadata, parse_metadata
from confstore.configuration.query import build_query, channel_for
from confstore.configuration.registry import SubscriptionRegistry
from confstore.configuration.types import (
    ConfigurationItem,
    GetRequest,
    GetResponse,
    Metadata,
    SubscribeRequest,
    UnsubscribeRequest,
    UpdateHandler,
)
from confstore.logging import LoggerProtocol, get_logger


class PostgresConfigurationStore:
    """Configuration store backed by a PostgreSQL table.

    Items are read with plain SELECTs; live updates arrive through
    LISTEN/NOTIFY on a channel named after the table. Rows are expected to
    have ``key``, ``value``, ``version`` and JSON ``metadata`` columns, and a
    trigger on the table should ``pg_notify`` the changed row wrapped in a
    ``data`` object.
    """

    def __init__(
        self,
        settings: ConfigurationStoreSettings | None = None,
        logger: LoggerProtocol | None = None,
        **pool_kwargs: Any,
    ) -> None:
        """Initialize the store. Nothing connects until ``init``.

        Args:
            settings: Optional settings instance. Defaults will be used if not provided.
            logger: Optional logger instance. A default one will be created if not provided.
            **pool_kwargs: Additional keyword arguments for the connection pool.
        """
        self._settings = settings or default_settings
        self._logger = logger or get_logger("confstore.configuration.postgresql")
        self._pool_kwargs = pool_kwargs

        self._metadata: StoreMetadata | None = None
        self._pool: asyncpg.Pool | None = None
        self._subscriptions = SubscriptionRegistry()
        self._init_lock = asyncio.Lock()

        self._logger.debug("Instantiating PostgreSQL configuration store")

    @property
    def settings(self) -> ConfigurationStoreSettings:
        return self._settings

    @property
    def logger(self) -> LoggerProtocol:
        return self._logger

    @property
    def metadata(self) -> StoreMetadata | None:
        return self._metadata

    @property
    def subscriptions(self) -> SubscriptionRegistry:
        return self._subscriptions

    @property
    def channel(self) -> str:
        """Notification channel, derived from the configuration table."""
        return channel_for(self._require_metadata().table)

    async def init(self, metadata: Metadata | Mapping[str, str]) -> None:
        """Validate the component metadata and connect to PostgreSQL.

        Raises:
            AlreadyInitializedError: If a previous ``init`` succeeded.
            ConfigurationStoreConfigError: If the metadata is invalid.
            StoreConnectionError: If the pool cannot be created or pinged.
        """
        self._logger.debug("Initializing PostgreSQL configuration store")
        async with self._init_lock:
            if self._pool is not None:
                raise AlreadyInitializedError(
                    "PostgreSQL configuration store already initialized"
                )

            try:
                parsed = parse_metadata(metadata, self._settings)
            except ConfigurationStoreConfigError as exc:
                self._logger.error(exc.message, extra={"error": exc})
                raise

            connection_string = parsed.connection_string.get_secret_value()
            self._logger.info(
                "Connecting to PostgreSQL configuration store",
                extra={
                    "dsn": pg.obfuscate_dsn(connection_string),
                    "table": parsed.table,
                    "max_idle_time": parsed.max_idle_time,
                },
            )
            pool = await pg.connect(
                connection_string,
                parsed.max_idle_time,
                self._settings,
                **self._pool_kwargs,
            )

            try:
                exists = await pg.table_exists(pool, parsed.table)
            except StoreConnectionError:
                await pool.close()
                raise
            if not exists:
                self._logger.warning(
                    "Configuration table does not exist yet",
                    extra={"table": parsed.table},
                )

            self._metadata = parsed
            self._pool = pool
            self._logger.info(
                "Connected to PostgreSQL configuration store",
                extra={"table": parsed.table},
            )

    async def get(self, request: GetRequest) -> GetResponse:
        """Fetch the configuration items matching ``request``.

        Raises:
            StoreNotInitializedError: If ``init`` has not succeeded.
            ConfigurationQueryError: If the query or row decoding fails.
        """
        pool = self._require_pool()
        table = self._require_metadata().table
        query = build_query(request.keys, request.metadata, table)

        try:
            async with pool.acquire() as connection:
                records = await connection.fetch(query.sql, *query.params)
        except CONNECTION_ERRORS as exc:
            self._logger.error(
                "Configuration query failed",
                extra={"table": table, "sql": query.sql},
                exc_info=exc,
            )
            raise ConfigurationQueryError(
                f"postgres configuration store query error: {exc}", table=table
            ) from exc

        response = GetResponse()
        for record in records:
            key, item = self._decode_record(record, table)
            response.items[key] = item
        return response

    def _decode_record(
        self, record: Mapping[str, Any], table: str
    ) -> tuple[str, ConfigurationItem]:
        try:
            key = record["key"]
            metadata = record["metadata"]
            if metadata is None:
                metadata = {}
            elif isinstance(metadata, str | bytes | bytearray):
                metadata = json.loads(metadata)
            item = ConfigurationItem(
                value=record["value"], version=record["version"], metadata=metadata
            )
        except (KeyError, ValueError, TypeError) as exc:
            # ValidationError and JSONDecodeError are both ValueErrors
            self._logger.error(
                "Failed to decode configuration row",
                extra={"table": table},
                exc_info=exc,
            )
            raise ConfigurationQueryError(
                f"failed to decode configuration row: {exc}", table=table
            ) from exc

        if not isinstance(key, str):
            raise ConfigurationQueryError(
                f"configuration key must be a string, got {type(key).__name__}",
                table=table,
            )
        return key, item

    async def subscribe(
        self, request: SubscribeRequest, handler: UpdateHandler
    ) -> str:
        """Start a listener delivering table changes to ``handler``.

        A new subscription supersedes any live one on the same table. Listener
        failures are logged; they are never returned from here.

        Raises:
            StoreNotInitializedError: If ``init`` has not succeeded.
        """
        pool = self._require_pool()
        metadata = self._require_metadata()
        channel = channel_for(metadata.table)
        subscription_id = str(uuid.uuid4())

        listener = NotificationListener(
            pool,
            channel=channel,
            subscription_id=subscription_id,
            handler=handler,
            max_idle_time=metadata.max_idle_time,
            logger=self._logger,
        )
        previous = await self._subscriptions.register(listener)
        if previous is not None:
            previous.stop()
            self._logger.debug(
                "Superseded previous subscription",
                extra={"subscription_id": previous.id, "channel": previous.channel},
            )

        listener.start()
        self._logger.debug(
            "Subscribed to configuration changes",
            extra={
                "subscription_id": subscription_id,
                "channel": channel,
                "keys": request.keys,
            },
        )
        return subscription_id

    async def unsubscribe(self, request: UnsubscribeRequest) -> None:
        """Stop the subscription with ``request.id``; unknown ids are ignored."""
        listener = await self._subscriptions.remove(request.id)
        if listener is None:
            return
        listener.stop()
        self._logger.debug(
            "Unsubscribed from configuration changes",
            extra={"subscription_id": request.id, "channel": listener.channel},
        )

    async def close(self) -> None:
        """Stop every listener and close the connection pool."""
        listeners = await self._subscriptions.drain()
        for listener in listeners:
            listener.stop()
        await asyncio.gather(*(listener.wait_closed() for listener in listeners))

        if self._pool is not None:
            await self._pool.close()
            self._pool = None

        self._logger.info("Closed PostgreSQL configuration store")

    async def __aenter__(self) -> PostgresConfigurationStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise StoreNotInitializedError(
                "PostgreSQL configuration store is not initialized"
            )
        return self._pool

    def _require_metadata(self) -> StoreMetadata:
        if self._metadata is None:
            raise StoreNotInitializedError(
                "PostgreSQL configuration store is not initialized"
            )
        return self._metadata


def new_postgres_configuration_store(
    logger: LoggerProtocol | None = None,
) -> PostgresConfigurationStore:
    """Create an uninitialized store, as the host's component factory does."""
    return PostgresConfigurationStore(logger=logger)
