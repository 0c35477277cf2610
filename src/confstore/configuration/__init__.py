"""PostgreSQL configuration store.

This package provides a PostgreSQL-backed configuration store with support
for LISTEN/NOTIFY for real-time change subscriptions.
"""

from __future__ import annotations

from confstore.configuration.config import ConfigurationStoreSettings
from confstore.configuration.decoder import decode_notification
from confstore.configuration.listener import ListenerState, NotificationListener
from confstore.configuration.metadata import StoreMetadata, parse_duration, parse_metadata
from confstore.configuration.postgresql import (
    PostgresConfigurationStore,
    new_postgres_configuration_store,
)
from confstore.configuration.protocols import ConfigurationStoreProtocol
from confstore.configuration.query import Query, build_query
from confstore.configuration.registry import SubscriptionRegistry
from confstore.configuration.types import (
    ConfigurationItem,
    GetRequest,
    GetResponse,
    Metadata,
    SubscribeRequest,
    UnsubscribeRequest,
    UpdateEvent,
    UpdateHandler,
)

__all__ = [
    "ConfigurationItem",
    "ConfigurationStoreProtocol",
    "ConfigurationStoreSettings",
    "GetRequest",
    "GetResponse",
    "ListenerState",
    "Metadata",
    "NotificationListener",
    "PostgresConfigurationStore",
    "Query",
    "StoreMetadata",
    "SubscribeRequest",
    "SubscriptionRegistry",
    "UnsubscribeRequest",
    "UpdateEvent",
    "UpdateHandler",
    "build_query",
    "decode_notification",
    "new_postgres_configuration_store",
    "parse_duration",
    "parse_metadata",
]
