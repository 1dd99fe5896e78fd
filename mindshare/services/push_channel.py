"""Push channel: incremental record batches delivered over a WebSocket.

Each channel carries one record kind.  Messages are JSON objects shaped as
either ``{"items": [...]}`` or ``{"item": {...}}``; anything else is ignored.
Every non-empty batch is handed to the ``on_batch`` callback, which merges
it into the rolling store as a ``Push`` event.

Transport failures never propagate: they are logged as ``channel_error``
and the channel reconnects with exponential backoff and jitter until
:meth:`WebSocketPushChannel.close` is called.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import random
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from mindshare.core.errors import ChannelError
from mindshare.core.logging import (
    EVENT_CHANNEL_CLOSED,
    EVENT_CHANNEL_CONNECTED,
    EVENT_CHANNEL_ERROR,
    EVENT_CHANNEL_MESSAGE,
    EVENT_CHANNEL_RECONNECT,
    log_event,
)
from mindshare.models.records import RecordKind

logger = logging.getLogger(__name__)

OnBatch = Callable[[RecordKind, list[Mapping[str, Any]]], None]

DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 60.0
DEFAULT_JITTER = 1.0
# Upper bound on the doubling exponent; keeps the delay a finite float.
MAX_BACKOFF_EXPONENT = 32


@runtime_checkable
class PushChannel(Protocol):
    """A running subscription that can be shut down."""

    def start(self) -> None: ...

    async def close(self) -> None: ...


def parse_channel_message(message: str | bytes) -> list[Mapping[str, Any]]:
    """Extract the record batch from one channel message.

    Raises:
        ChannelError: If *message* is not valid JSON.
    """
    try:
        payload = json.loads(message)
    except (TypeError, ValueError) as exc:
        raise ChannelError(f"unreadable channel message: {exc}") from exc

    if not isinstance(payload, Mapping):
        return []
    items = payload.get("items")
    if isinstance(items, list):
        return [item for item in items if isinstance(item, Mapping)]
    item = payload.get("item")
    if isinstance(item, Mapping):
        return [item]
    return []


def backoff_delay(
    attempt: int,
    *,
    base: float = DEFAULT_BASE_DELAY,
    cap: float = DEFAULT_MAX_DELAY,
    jitter: float = DEFAULT_JITTER,
) -> float:
    """Exponential delay for reconnect *attempt* (1-based), capped, plus jitter."""
    exponent = min(max(0, attempt - 1), MAX_BACKOFF_EXPONENT)
    delay = min(cap, base * (2 ** exponent))
    return delay + random.uniform(0, jitter) if jitter > 0 else delay


class WebSocketPushChannel:
    """Reconnecting WebSocket subscription for one record kind."""

    def __init__(
        self,
        url: str,
        kind: RecordKind,
        on_batch: OnBatch,
        *,
        connect: Callable[[str], Any] = websockets.connect,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        jitter: float = DEFAULT_JITTER,
    ) -> None:
        self.url = url
        self.kind = kind
        self._on_batch = on_batch
        self._connect = connect
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._jitter = jitter
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self.connected = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the receive loop on the running event loop (idempotent)."""
        if self.is_running:
            return
        self._closed = False
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"push-channel-{self.kind}",
        )

    async def close(self) -> None:
        """Stop reconnecting and cancel the receive loop."""
        self._closed = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.connected = False
        log_event(logger, "info", EVENT_CHANNEL_CLOSED, kind=self.kind)

    def _dispatch(self, message: str | bytes) -> None:
        try:
            items = parse_channel_message(message)
        except ChannelError as exc:
            log_event(logger, "warning", EVENT_CHANNEL_ERROR, kind=self.kind, detail=exc)
            return
        if not items:
            return
        log_event(logger, "debug", EVENT_CHANNEL_MESSAGE, kind=self.kind, count=len(items))
        try:
            self._on_batch(self.kind, items)
        except Exception as exc:
            log_event(
                logger, "error", EVENT_CHANNEL_ERROR,
                kind=self.kind, count=len(items), detail=f"{type(exc).__name__}: {exc}",
            )

    async def _run(self) -> None:
        attempt = 0
        while not self._closed:
            try:
                async with self._connect(self.url) as ws:
                    attempt = 0
                    self.connected = True
                    log_event(logger, "info", EVENT_CHANNEL_CONNECTED, kind=self.kind)
                    async for message in ws:
                        self._dispatch(message)
            except (ConnectionClosed, WebSocketException, OSError, TimeoutError) as exc:
                error = ChannelError(f"{type(exc).__name__}: {exc}")
                log_event(logger, "warning", EVENT_CHANNEL_ERROR, kind=self.kind, detail=error)
            finally:
                self.connected = False

            if self._closed:
                break
            attempt += 1
            delay = backoff_delay(
                attempt, base=self._base_delay, cap=self._max_delay, jitter=self._jitter,
            )
            log_event(logger, "info", EVENT_CHANNEL_RECONNECT, kind=self.kind, attempt=attempt,
                      delay_seconds=round(delay, 2))
            await asyncio.sleep(delay)
