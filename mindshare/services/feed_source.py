"""Feed source abstraction with a provider-agnostic interface.

Sources
-------
- **StaticFeedSource** — in-memory batches for tests and when no API key is
  configured.
- **LunarCrushFeedSource** — the LunarCrush v4 topic endpoints over
  ``httpx`` (requires ``FEED_API_KEY``).

A source returns *raw* payloads; normalization happens downstream.  The
module exposes :func:`get_feed_source` (factory) and :func:`unwrap_array`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

import httpx

from mindshare.core.errors import FetchErrorCategory, SourceFetchError
from mindshare.core.settings import Settings
from mindshare.models.records import RecordKind
from mindshare.services.push_channel import OnBatch, PushChannel, WebSocketPushChannel

logger = logging.getLogger(__name__)

RawRecord = Mapping[str, Any]

_ERROR_BODY_PREVIEW = 300


# ---------------------------------------------------------------------------
# Source protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class FeedSource(Protocol):
    """Minimal interface every feed source must satisfy.

    A source may additionally implement ``subscribe(on_batch)`` returning
    the push channels it can open; the engine starts them alongside polling.
    """

    @property
    def source_name(self) -> str: ...

    async def fetch_recent_posts(self, limit: int) -> list[RawRecord]:
        """Return up to *limit* raw posts, most recent first."""
        ...

    async def fetch_influencers(self, limit: int) -> list[RawRecord]:
        """Return up to *limit* raw creator profiles."""
        ...


def unwrap_array(data: object) -> list[Any]:
    """Return the record array from a bare list or a ``data`` / ``items`` wrapper."""
    if isinstance(data, list):
        return data
    if isinstance(data, Mapping):
        for key in ("data", "items"):
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


# ---------------------------------------------------------------------------
# Static source (tests + unconfigured fallback)
# ---------------------------------------------------------------------------


class StaticFeedSource:
    """Serves fixed batches.  Used in tests and when no API key is set.

    ``posts_error`` / ``influencers_error`` make the corresponding fetch
    raise, to exercise per-source failure handling.  :meth:`emit` delivers a
    batch to the subscriber as if it arrived over a push channel.
    """

    source_name: str = "static"

    def __init__(
        self,
        posts: Sequence[RawRecord] = (),
        influencers: Sequence[RawRecord] = (),
        *,
        posts_error: BaseException | None = None,
        influencers_error: BaseException | None = None,
    ) -> None:
        self.posts = list(posts)
        self.influencers = list(influencers)
        self.posts_error = posts_error
        self.influencers_error = influencers_error
        self.calls: dict[RecordKind, int] = {RecordKind.posts: 0, RecordKind.influencers: 0}
        self._subscriber: OnBatch | None = None

    async def fetch_recent_posts(self, limit: int) -> list[RawRecord]:
        self.calls[RecordKind.posts] += 1
        if self.posts_error is not None:
            raise self.posts_error
        return self.posts[:limit]

    async def fetch_influencers(self, limit: int) -> list[RawRecord]:
        self.calls[RecordKind.influencers] += 1
        if self.influencers_error is not None:
            raise self.influencers_error
        return self.influencers[:limit]

    def subscribe(self, on_batch: OnBatch) -> list[PushChannel]:
        self._subscriber = on_batch
        return []

    def emit(self, kind: RecordKind, items: Sequence[RawRecord]) -> None:
        if self._subscriber is not None:
            self._subscriber(kind, list(items))


# ---------------------------------------------------------------------------
# LunarCrush source
# ---------------------------------------------------------------------------


class LunarCrushFeedSource:
    """Fetches topic posts and creators from the LunarCrush v4 API.

    The posts endpoint does not reliably honour ``limit`` and the creators
    endpoint ignores it, so both results are sliced client-side.
    """

    source_name: str = "lunarcrush"

    def __init__(
        self,
        api_key: str,
        *,
        topic: str,
        api_base: str = "https://lunarcrush.com/api4",
        timeout_seconds: float = 10.0,
        feeds_ws_url: str | None = None,
        influencers_ws_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.topic = topic.lower()
        self.feeds_ws_url = feeds_ws_url
        self.influencers_ws_url = influencers_ws_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=api_base.rstrip("/"),
            timeout=timeout_seconds,
        )
        # Either header is accepted depending on the plan; send both.
        self._headers = {
            "accept": "application/json",
            "authorization": f"Bearer {api_key}",
            "x-api-key": api_key,
        }

    async def fetch_recent_posts(self, limit: int) -> list[RawRecord]:
        raw = await self._get_json(
            f"/public/topic/{self.topic}/posts/v1",
            kind=RecordKind.posts,
            params={"limit": limit},
        )
        return unwrap_array(raw)[:limit]

    async def fetch_influencers(self, limit: int) -> list[RawRecord]:
        raw = await self._get_json(
            f"/public/topic/{self.topic}/creators/v1",
            kind=RecordKind.influencers,
        )
        return unwrap_array(raw)[:limit]

    def subscribe(self, on_batch: OnBatch) -> list[PushChannel]:
        """Build one push channel per configured WebSocket URL."""
        channels: list[PushChannel] = []
        if self.feeds_ws_url:
            channels.append(WebSocketPushChannel(self.feeds_ws_url, RecordKind.posts, on_batch))
        if self.influencers_ws_url:
            channels.append(
                WebSocketPushChannel(self.influencers_ws_url, RecordKind.influencers, on_batch)
            )
        return channels

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(
        self,
        path: str,
        *,
        kind: RecordKind,
        params: Mapping[str, Any] | None = None,
    ) -> object:
        try:
            response = await self._client.get(path, params=params, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise SourceFetchError(
                f"timed out on {path}", source=self.source_name, kind=kind,
                category=FetchErrorCategory.timeout,
            ) from exc
        except httpx.RequestError as exc:
            raise SourceFetchError(
                f"{type(exc).__name__} on {path}", source=self.source_name, kind=kind,
                category=FetchErrorCategory.network,
            ) from exc

        if response.is_error:
            reason = (response.text or response.reason_phrase or "request failed")
            raise SourceFetchError(
                f"HTTP {response.status_code} on {path}: {reason[:_ERROR_BODY_PREVIEW]}",
                source=self.source_name, kind=kind,
                category=FetchErrorCategory.http,
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise SourceFetchError(
                f"invalid JSON on {path}", source=self.source_name, kind=kind,
                category=FetchErrorCategory.parsing,
            ) from exc


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def get_feed_source(config: Settings) -> FeedSource:
    """Return the feed source matching the current configuration.

    Falls back to an empty :class:`StaticFeedSource` when no API key is set.
    """
    if not config.is_feed_configured:
        logger.warning("No feed API key configured; serving an empty static feed")
        return StaticFeedSource()

    return LunarCrushFeedSource(
        config.feed_api_key or "",
        topic=config.token_symbol,
        api_base=config.feed_api_base,
        timeout_seconds=config.request_timeout_seconds,
        feeds_ws_url=config.feeds_ws_url,
        influencers_ws_url=config.influencers_ws_url,
    )
