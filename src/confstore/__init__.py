# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore

"""
confstore: PostgreSQL-backed configuration items with live change subscriptions.
"""

from confstore.configuration import (
    ConfigurationItem,
    GetRequest,
    GetResponse,
    Metadata,
    PostgresConfigurationStore,
    SubscribeRequest,
    UnsubscribeRequest,
    UpdateEvent,
    new_postgres_configuration_store,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationItem",
    "GetRequest",
    "GetResponse",
    "Metadata",
    "PostgresConfigurationStore",
    "SubscribeRequest",
    "UnsubscribeRequest",
    "UpdateEvent",
    "new_postgres_configuration_store",
]
