# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.registry
Bookkeeping of live subscriptions for one store instance
"""

from __future__ import annotations

import asyncio

from confstore.configuration.listener import NotificationListener


class SubscriptionRegistry:
    """Live listeners keyed by channel, with a subscription id index.

    A channel has at most one live listener. Registering a listener for a
    channel that already has one supersedes it: the old entry and its id are
    dropped and the old listener is returned so the caller can stop it.
    """

    def __init__(self) -> None:
        self._by_channel: dict[str, NotificationListener] = {}
        self._channel_by_id: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def register(
        self, listener: NotificationListener
    ) -> NotificationListener | None:
        """Register a listener, returning the one it supersedes (if any)."""
        async with self._lock:
            previous = self._by_channel.get(listener.channel)
            if previous is not None:
                self._channel_by_id.pop(previous.id, None)
            self._by_channel[listener.channel] = listener
            self._channel_by_id[listener.id] = listener.channel
            return previous

    async def remove(self, subscription_id: str) -> NotificationListener | None:
        """Remove a subscription by id. Unknown or superseded ids return None."""
        async with self._lock:
            channel = self._channel_by_id.pop(subscription_id, None)
            if channel is None:
                return None
            return self._by_channel.pop(channel, None)

    async def drain(self) -> list[NotificationListener]:
        """Remove and return every registered listener."""
        async with self._lock:
            listeners = list(self._by_channel.values())
            self._by_channel.clear()
            self._channel_by_id.clear()
            return listeners

    def get(self, subscription_id: str) -> NotificationListener | None:
        channel = self._channel_by_id.get(subscription_id)
        if channel is None:
            return None
        return self._by_channel.get(channel)

    def ids(self) -> list[str]:
        return list(self._channel_by_id)

    def __contains__(self, subscription_id: object) -> bool:
        return subscription_id in self._channel_by_id

    def __len__(self) -> int:
        return len(self._by_channel)
