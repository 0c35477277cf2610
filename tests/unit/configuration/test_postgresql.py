"""Tests for the PostgreSQL configuration store."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from confstore.configuration.errors import (
    AlreadyInitializedError,
    ConfigurationQueryError,
    InvalidTableNameError,
    StoreConnectionError,
    StoreNotInitializedError,
)
from confstore.configuration.listener import ListenerState
from confstore.configuration.postgresql import (
    PostgresConfigurationStore,
    new_postgres_configuration_store,
)
from confstore.configuration.types import (
    ConfigurationItem,
    GetRequest,
    SubscribeRequest,
    UnsubscribeRequest,
    UpdateEvent,
)
from tests.fakes import FakeConnection, FakePool, eventually

MODULE = "confstore.configuration.postgresql.pg"


@pytest.fixture
def connect(monkeypatch: pytest.MonkeyPatch, fake_pool: FakePool) -> AsyncMock:
    mock = AsyncMock(return_value=fake_pool)
    monkeypatch.setattr(f"{MODULE}.connect", mock)
    return mock


@pytest.fixture
def table_exists(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr(f"{MODULE}.table_exists", mock)
    return mock


@pytest.fixture
def store(mock_logger: MagicMock) -> PostgresConfigurationStore:
    return PostgresConfigurationStore(logger=mock_logger)


@pytest.fixture
async def ready_store(
    store: PostgresConfigurationStore,
    store_properties: dict[str, str],
    connect: AsyncMock,
    table_exists: AsyncMock,
):
    await store.init(store_properties)
    yield store
    await store.close()


def record(
    key: Any, value: str = "v", version: str = "1", metadata: Any = None
) -> dict[str, Any]:
    return {"key": key, "value": value, "version": version, "metadata": metadata}


def query_connection(fake_pool: FakePool, rows: list[Any]) -> FakeConnection:
    connection = FakeConnection()
    connection.fetch.return_value = rows
    fake_pool.next_connection = connection
    return connection


class TestInit:
    async def test_init_connects(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        table_exists: AsyncMock,
        fake_pool: FakePool,
    ) -> None:
        await store.init(store_properties)

        assert store.metadata is not None
        assert store.channel == "configtable"
        connection_string, idle = connect.await_args.args[:2]
        assert connection_string == store_properties["connectionString"]
        assert idle.total_seconds() == 2
        table_exists.assert_awaited_once_with(fake_pool, "configtable")

    async def test_init_does_not_log_password(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        table_exists: AsyncMock,
        mock_logger: MagicMock,
    ) -> None:
        await store.init(store_properties)

        for call in mock_logger.info.call_args_list:
            assert "secret" not in str(call)

    async def test_init_twice(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        table_exists: AsyncMock,
    ) -> None:
        await store.init(store_properties)

        with pytest.raises(AlreadyInitializedError):
            await store.init(store_properties)
        assert connect.await_count == 1

    async def test_invalid_metadata_is_logged(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        mock_logger: MagicMock,
    ) -> None:
        store_properties["table"] = "tablé"

        with pytest.raises(InvalidTableNameError) as exc_info:
            await store.init(store_properties)

        connect.assert_not_awaited()
        assert mock_logger.error.call_args.kwargs["extra"]["error"] is exc_info.value
        assert store.metadata is None

    async def test_connect_failure_allows_retry(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        table_exists: AsyncMock,
        fake_pool: FakePool,
    ) -> None:
        connect.side_effect = [StoreConnectionError("refused"), fake_pool]

        with pytest.raises(StoreConnectionError):
            await store.init(store_properties)
        await store.init(store_properties)

        assert store.metadata is not None

    async def test_table_check_failure_closes_pool(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        table_exists: AsyncMock,
        fake_pool: FakePool,
    ) -> None:
        table_exists.side_effect = StoreConnectionError("catalog unavailable")

        with pytest.raises(StoreConnectionError):
            await store.init(store_properties)

        fake_pool.close.assert_awaited_once()
        with pytest.raises(StoreNotInitializedError):
            await store.get(GetRequest())

    async def test_missing_table_only_warns(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        table_exists: AsyncMock,
        mock_logger: MagicMock,
    ) -> None:
        table_exists.return_value = False

        await store.init(store_properties)

        assert store.metadata is not None
        mock_logger.warning.assert_called_once()

    def test_factory(self, mock_logger: MagicMock) -> None:
        store = new_postgres_configuration_store(mock_logger)

        assert store.logger is mock_logger
        assert store.metadata is None


class TestGet:
    async def test_get_before_init(self, store: PostgresConfigurationStore) -> None:
        with pytest.raises(StoreNotInitializedError):
            await store.get(GetRequest(keys=["k"]))

    async def test_get_empty_table(
        self, ready_store: PostgresConfigurationStore, fake_pool: FakePool
    ) -> None:
        query_connection(fake_pool, [])

        response = await ready_store.get(GetRequest())

        assert response.items == {}

    async def test_get_passes_parameters(
        self, ready_store: PostgresConfigurationStore, fake_pool: FakePool
    ) -> None:
        connection = query_connection(fake_pool, [])

        await ready_store.get(GetRequest(keys=["a", "b"], metadata={"env": "prod"}))

        connection.fetch.assert_awaited_once_with(
            'SELECT * FROM configtable WHERE key IN ($1, $2) AND "env" = $3',
            "a",
            "b",
            "prod",
        )
        assert fake_pool.released == [connection]

    async def test_get_decodes_rows(
        self, ready_store: PostgresConfigurationStore, fake_pool: FakePool
    ) -> None:
        query_connection(
            fake_pool,
            [
                record("k1", "v1", "1", '{"owner": "x"}'),
                record("k2", "v2", "4", {"owner": "y"}),
                record("k3", "v3", "2", None),
            ],
        )

        response = await ready_store.get(GetRequest(keys=["k1", "k2", "k3"]))

        assert response.items == {
            "k1": ConfigurationItem(value="v1", version="1", metadata={"owner": "x"}),
            "k2": ConfigurationItem(value="v2", version="4", metadata={"owner": "y"}),
            "k3": ConfigurationItem(value="v3", version="2"),
        }

    @pytest.mark.parametrize(
        "row",
        [
            record("k", metadata="not json"),
            record("k", metadata='{"retries": 3}'),
            record(7),
            {"key": "k", "value": "v"},
        ],
    )
    async def test_get_rejects_bad_rows(
        self,
        ready_store: PostgresConfigurationStore,
        fake_pool: FakePool,
        row: dict[str, Any],
    ) -> None:
        query_connection(fake_pool, [row])

        with pytest.raises(ConfigurationQueryError):
            await ready_store.get(GetRequest())

    async def test_get_wraps_database_errors(
        self, ready_store: PostgresConfigurationStore, fake_pool: FakePool
    ) -> None:
        connection = query_connection(fake_pool, [])
        connection.fetch.side_effect = asyncpg.UndefinedTableError(
            'relation "configtable" does not exist'
        )

        with pytest.raises(ConfigurationQueryError) as exc_info:
            await ready_store.get(GetRequest())

        assert exc_info.value.context["table"] == "configtable"
        assert isinstance(exc_info.value.__cause__, asyncpg.UndefinedTableError)


class TestSubscriptions:
    async def test_subscribe_before_init(
        self, store: PostgresConfigurationStore
    ) -> None:
        with pytest.raises(StoreNotInitializedError):
            await store.subscribe(SubscribeRequest(), MagicMock())

    async def test_subscribe_delivers_updates(
        self, ready_store: PostgresConfigurationStore, fake_pool: FakePool
    ) -> None:
        events: list[UpdateEvent] = []
        connection = FakeConnection()
        fake_pool.next_connection = connection

        subscription_id = await ready_store.subscribe(
            SubscribeRequest(keys=["k"]), events.append
        )
        listener = ready_store.subscriptions.get(subscription_id)
        assert listener is not None
        await eventually(lambda: listener.state is ListenerState.LISTENING)

        connection.notify(
            "configtable", '{"data": {"key": "k", "value": "v", "version": "2"}}'
        )
        await eventually(lambda: len(events) == 1)

        assert events[0].id == subscription_id
        assert events[0].items["k"].version == "2"

    async def test_mixed_case_table_listens_on_folded_channel(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        table_exists: AsyncMock,
        fake_pool: FakePool,
    ) -> None:
        store_properties["table"] = "ConfigTable"
        await store.init(store_properties)
        events: list[UpdateEvent] = []
        connection = FakeConnection()
        fake_pool.next_connection = connection

        subscription_id = await store.subscribe(SubscribeRequest(), events.append)
        listener = store.subscriptions.get(subscription_id)
        assert listener is not None
        await eventually(lambda: listener.state is ListenerState.LISTENING)

        assert store.channel == "configtable"
        assert listener.channel == "configtable"
        assert list(connection.listeners) == ["configtable"]

        connection.notify("configtable", '{"data": {"key": "k", "value": "v"}}')
        await eventually(lambda: len(events) == 1)
        await store.close()

    async def test_new_subscription_supersedes_previous(
        self, ready_store: PostgresConfigurationStore
    ) -> None:
        first_id = await ready_store.subscribe(SubscribeRequest(), MagicMock())
        first = ready_store.subscriptions.get(first_id)
        second_id = await ready_store.subscribe(SubscribeRequest(), MagicMock())

        assert first_id != second_id
        assert first is not None
        await asyncio.wait_for(first.wait_closed(), 1.0)
        assert ready_store.subscriptions.ids() == [second_id]

        # the superseded id is already gone
        await ready_store.unsubscribe(UnsubscribeRequest(id=first_id))
        assert second_id in ready_store.subscriptions

    async def test_unsubscribe_unknown_id(
        self, ready_store: PostgresConfigurationStore
    ) -> None:
        await ready_store.unsubscribe(UnsubscribeRequest(id="nope"))
        assert len(ready_store.subscriptions) == 0

    async def test_unsubscribe_stops_delivery(
        self, ready_store: PostgresConfigurationStore, fake_pool: FakePool
    ) -> None:
        handler = MagicMock()
        connection = FakeConnection()
        fake_pool.next_connection = connection
        subscription_id = await ready_store.subscribe(SubscribeRequest(), handler)
        listener = ready_store.subscriptions.get(subscription_id)
        assert listener is not None
        await eventually(lambda: listener.state is ListenerState.LISTENING)

        await ready_store.unsubscribe(UnsubscribeRequest(id=subscription_id))
        await asyncio.wait_for(listener.wait_closed(), 1.0)
        connection.notify("configtable", '{"data": {"key": "k"}}')
        await asyncio.sleep(0.02)

        handler.assert_not_called()
        assert subscription_id not in ready_store.subscriptions
        assert fake_pool.released == [connection]

    async def test_close_stops_listeners_and_pool(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        table_exists: AsyncMock,
        fake_pool: FakePool,
    ) -> None:
        await store.init(store_properties)
        subscription_id = await store.subscribe(SubscribeRequest(), MagicMock())
        listener = store.subscriptions.get(subscription_id)
        assert listener is not None

        await store.close()

        assert listener.done
        assert len(store.subscriptions) == 0
        fake_pool.close.assert_awaited_once()
        with pytest.raises(StoreNotInitializedError):
            await store.subscribe(SubscribeRequest(), MagicMock())

    async def test_async_context_manager_closes(
        self,
        store: PostgresConfigurationStore,
        store_properties: dict[str, str],
        connect: AsyncMock,
        table_exists: AsyncMock,
        fake_pool: FakePool,
    ) -> None:
        async with store:
            await store.init(store_properties)

        fake_pool.close.assert_awaited_once()
