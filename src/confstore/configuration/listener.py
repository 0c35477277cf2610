# SPDX-FileCopyrightText: 2024-present Richard Dahl <richard@dahl.us>
# SPDX-License-Identifier: MIT
# SPDX-Package-Name: confstore
"""
configuration.listener
Per-subscription LISTEN loop

Each listener holds one pooled connection for its whole lifetime, LISTENs on
the table's channel and hands every notification to the decoder and then to
the subscriber's handler. Every wait is bounded by the store's idle time; an
idle timeout or a stop request ends the listener quietly.
"""

from __future__ import annotations

import asyncio
import inspect
from datetime import timedelta
from enum import Enum
from typing import Any, Final

import asyncpg

from confstore.configuration.decoder import decode_notification
from confstore.configuration.errors import (
    HandlerError,
    ListenError,
    NotificationDecodeError,
)
from confstore.configuration.types import UpdateEvent, UpdateHandler
from confstore.logging import LoggerProtocol, get_logger

# Errors raised by asyncpg for broken or unusable connections.
CONNECTION_ERRORS: Final = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
)


class ListenerState(str, Enum):
    STARTING = "starting"
    LISTENING = "listening"
    STOPPED = "stopped"


class _Terminated:
    """Queue marker pushed when the server closes the listening connection."""


_TERMINATED: Final = _Terminated()


class NotificationListener:
    """Background task delivering table change notifications to one handler."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        channel: str,
        subscription_id: str,
        handler: UpdateHandler,
        max_idle_time: timedelta,
        logger: LoggerProtocol | None = None,
    ) -> None:
        """Create a listener; nothing happens until ``start`` is called.

        Args:
            pool: Shared pool to take the dedicated connection from.
            channel: Notification channel to LISTEN on.
            subscription_id: Identifier reported in every ``UpdateEvent``.
            handler: Subscriber callback, sync or async.
            max_idle_time: Bound for acquiring, LISTENing and each wait.
            logger: Optional logger instance.
        """
        self._pool = pool
        self._channel = channel
        self._id = subscription_id
        self._handler = handler
        self._timeout = max_idle_time.total_seconds()
        self._logger = logger or get_logger("confstore.configuration.listener")

        self._state = ListenerState.STARTING
        self._stop = asyncio.Event()
        self._done = asyncio.Event()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self) -> asyncio.Task[None]:
        """Schedule the listen loop on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(
                self._run(), name=f"confstore-listener-{self._id}"
            )
        return self._task

    def stop(self) -> None:
        """Ask the listener to finish. Safe to call any number of times."""
        self._stop.set()

    async def wait_closed(self) -> None:
        """Wait until the listener has released its connection."""
        if self._task is None:
            return
        await self._done.wait()

    async def _run(self) -> None:
        try:
            await self._listen()
        finally:
            self._state = ListenerState.STOPPED
            self._done.set()
            self._logger.debug(
                "Listener stopped",
                extra={"subscription_id": self._id, "channel": self._channel},
            )

    async def _listen(self) -> None:
        try:
            async with self._pool.acquire(timeout=self._timeout) as connection:
                if not await self._start_listening(connection):
                    return
                try:
                    await self._receive()
                finally:
                    await self._stop_listening(connection)
        except (asyncio.TimeoutError, *CONNECTION_ERRORS) as exc:
            self._report(
                ListenError(
                    f"connection for channel {self._channel} failed: {exc}",
                    subscription_id=self._id,
                    channel=self._channel,
                ),
                exc,
            )

    async def _start_listening(self, connection: asyncpg.Connection) -> bool:
        try:
            await asyncio.wait_for(
                connection.add_listener(self._channel, self._on_notification),
                self._timeout,
            )
        except (asyncio.TimeoutError, *CONNECTION_ERRORS) as exc:
            self._report(
                ListenError(
                    f"error listening to channel {self._channel}: {exc}",
                    subscription_id=self._id,
                    channel=self._channel,
                ),
                exc,
            )
            return False

        connection.add_termination_listener(self._on_termination)
        self._state = ListenerState.LISTENING
        self._logger.debug(
            "Listening for configuration changes",
            extra={"subscription_id": self._id, "channel": self._channel},
        )
        return True

    async def _stop_listening(self, connection: asyncpg.Connection) -> None:
        connection.remove_termination_listener(self._on_termination)
        if connection.is_closed():
            return
        try:
            await connection.remove_listener(self._channel, self._on_notification)
        except CONNECTION_ERRORS as exc:
            self._logger.warning(
                "Failed to UNLISTEN channel",
                extra={"subscription_id": self._id, "channel": self._channel},
                exc_info=exc,
            )

    async def _receive(self) -> None:
        while not self._stop.is_set():
            payload = await self._next_notification()
            if payload is None or self._stop.is_set():
                return
            if payload is _TERMINATED:
                self._report(
                    ListenError(
                        f"listening connection for channel {self._channel} was closed",
                        subscription_id=self._id,
                        channel=self._channel,
                    )
                )
                return
            await self._dispatch(payload)

    async def _next_notification(self) -> Any:
        """Wait for the next payload; ``None`` on idle timeout or stop."""
        if not self._queue.empty():
            return self._queue.get_nowait()

        getter = asyncio.ensure_future(self._queue.get())
        stopper = asyncio.ensure_future(self._stop.wait())
        try:
            done, _ = await asyncio.wait(
                {getter, stopper},
                timeout=self._timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in (getter, stopper):
                if not waiter.done():
                    waiter.cancel()

        if getter in done:
            return getter.result()
        if not done:
            self._logger.debug(
                "No notification within idle time, listener exiting",
                extra={"subscription_id": self._id, "channel": self._channel},
            )
        return None

    def _on_notification(
        self,
        connection: asyncpg.Connection,
        pid: int,
        channel: str,
        payload: str,
    ) -> None:
        if not self._stop.is_set():
            self._queue.put_nowait(payload)

    def _on_termination(self, connection: asyncpg.Connection) -> None:
        self._queue.put_nowait(_TERMINATED)

    async def _dispatch(self, payload: str) -> None:
        try:
            event = decode_notification(payload, self._id)
        except NotificationDecodeError as exc:
            self._report(exc, exc.__cause__)
            return
        except Exception as exc:  # pylint: disable=broad-except
            # a malformed payload must never end the listener
            self._report(
                NotificationDecodeError(
                    f"failed to decode notification: {exc}",
                    subscription_id=self._id,
                    channel=self._channel,
                ),
                exc,
            )
            return

        if event is None:
            self._logger.debug(
                "Notification without a data object dropped",
                extra={"subscription_id": self._id, "channel": self._channel},
            )
            return

        await self._notify(event)

    async def _notify(self, event: UpdateEvent) -> None:
        try:
            result = self._handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:  # pylint: disable=broad-except
            self._report(
                HandlerError(
                    f"fail to call handler to notify event for configuration update subscribe: {exc}",
                    subscription_id=self._id,
                    keys=list(event.items),
                ),
                exc,
            )

    def _report(
        self,
        error: ListenError | NotificationDecodeError | HandlerError,
        cause: BaseException | None = None,
    ) -> None:
        self._logger.error(
            error.message,
            extra={"error": error},
            exc_info=cause,
        )
