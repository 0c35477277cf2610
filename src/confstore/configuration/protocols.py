# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.protocols
Contract expected by hosts loading a configuration store
"""

from __future__ import annotations

from typing import Protocol

from confstore.configuration.types import (
    GetRequest,
    GetResponse,
    Metadata,
    SubscribeRequest,
    UnsubscribeRequest,
    UpdateHandler,
)


class ConfigurationStoreProtocol(Protocol):
    """Protocol for configuration store implementations."""

    async def init(self, metadata: Metadata) -> None:
        """Validate metadata and connect. May only succeed once.

        Raises:
            ConfigurationStoreConfigError: If the metadata is invalid or the
                store is already initialized
            StoreConnectionError: If the backing store cannot be reached
        """
        ...

    async def get(self, request: GetRequest) -> GetResponse:
        """Fetch configuration items.

        Raises:
            ConfigurationQueryError: If the read fails
        """
        ...

    async def subscribe(
        self, request: SubscribeRequest, handler: UpdateHandler
    ) -> str:
        """Start delivering updates to ``handler`` and return the subscription id."""
        ...

    async def unsubscribe(self, request: UnsubscribeRequest) -> None:
        """Stop a subscription. Unknown ids are ignored."""
        ...
