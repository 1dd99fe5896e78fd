"""Signal engine: the single owner of ingestion state and the read API.

One :class:`SignalEngine` instance owns one rolling store per record kind,
the poll scheduler and any push channels.  Every ingestion path (initial
load, poll tick, visibility refresh, push message) funnels through
:meth:`SignalEngine.ingest`, which applies an atomic store merge.

Every read method is a pure derivation from the current store snapshot;
reads never fetch and never raise on store contents.  A count argument
(``top_n``, ``limit``) below 1 is a caller error and raises :class:`ConfigError`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields
from typing import Any

from mindshare.core.errors import ConfigError, normalize_fetch_error
from mindshare.core.logging import (
    EVENT_ENGINE_STARTED,
    EVENT_ENGINE_STOPPED,
    EVENT_SOURCE_FETCH_START,
    EVENT_SOURCE_FETCH_SUCCEEDED,
    log_event,
)
from mindshare.core.scheduler import PollScheduler, SchedulerState
from mindshare.core.settings import Settings
from mindshare.models.records import CanonicalInfluencer, CanonicalPost, RecordKind
from mindshare.models.signals import (
    EngineSnapshot,
    LatestPost,
    LeaderboardRow,
    MindshareSnapshot,
    NarrativeAggregate,
    NarrativeSummary,
    SentimentLabel,
    TrendingTopic,
)
from mindshare.services.feed_source import FeedSource
from mindshare.services.highlights import (
    DEFAULT_LATEST_LIMIT,
    DEFAULT_LEADERBOARD_LIMIT,
    LeaderboardSort,
    influencer_leaderboard,
    latest_posts,
    posts_by_influencers,
)
from mindshare.services.mindshare import compute_mindshare
from mindshare.services.narratives import build_narratives, filter_narratives, summarize_narratives
from mindshare.services.normalizer import normalize_influencers, normalize_posts
from mindshare.services.push_channel import PushChannel
from mindshare.services.rolling_store import IngestionEvent, Poll, Push, RollingStore
from mindshare.services.trending import rank_trending_topics

logger = logging.getLogger(__name__)


def _positive_count(name: str, value: int | None, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return value


@dataclass(frozen=True)
class EngineConfig:
    """Validated engine knobs.

    Raises:
        ConfigError: On construction, if any count, interval or timeout is
            not positive.
    """

    fast_poll_interval_ms: int = 5 * 60 * 1000
    slow_poll_interval_ms: int = 60 * 60 * 1000
    rolling_cap_size: int = 500
    post_fetch_limit: int = 200
    influencer_fetch_limit: int = 50
    narrative_top_n: int = 12
    trending_top_n: int = 8
    request_timeout_seconds: float = 10.0
    enable_push: bool = True

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name == "enable_push":
                continue
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"{f.name} must be a positive number, got {value!r}")
            if f.type in ("int", int) and not isinstance(value, int):
                raise ConfigError(f"{f.name} must be an integer, got {value!r}")

    @classmethod
    def from_settings(cls, config: Settings) -> EngineConfig:
        return cls(
            fast_poll_interval_ms=config.fast_poll_interval_ms,
            slow_poll_interval_ms=config.slow_poll_interval_ms,
            rolling_cap_size=config.rolling_cap_size,
            post_fetch_limit=config.post_fetch_limit,
            influencer_fetch_limit=config.influencer_fetch_limit,
            narrative_top_n=config.narrative_top_n,
            trending_top_n=config.trending_top_n,
            request_timeout_seconds=config.request_timeout_seconds,
        )


class SignalEngine:
    """Owns the rolling stores, scheduler and push channels for one feed source."""

    def __init__(self, source: FeedSource, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self._source = source
        self._posts: RollingStore[CanonicalPost] = RollingStore(
            self.config.rolling_cap_size, name=RecordKind.posts,
        )
        self._influencers: RollingStore[CanonicalInfluencer] = RollingStore(
            self.config.rolling_cap_size, name=RecordKind.influencers,
        )
        self._scheduler = PollScheduler(
            self._fetch,
            {
                RecordKind.posts: self.config.fast_poll_interval_ms / 1000,
                RecordKind.influencers: self.config.slow_poll_interval_ms / 1000,
            },
        )
        self._channels: list[PushChannel] = []

    @property
    def source_name(self) -> str:
        return self._source.source_name

    @property
    def state(self) -> SchedulerState:
        return self._scheduler.state

    @property
    def scheduler(self) -> PollScheduler:
        return self._scheduler

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Initial fetch of every source, recurring polling, push channels."""
        if self._scheduler.state is not SchedulerState.idle:
            return
        self._scheduler.start()

        subscribe = getattr(self._source, "subscribe", None)
        if self.config.enable_push and callable(subscribe):
            self._channels = list(subscribe(self._on_push) or [])
            for channel in self._channels:
                channel.start()

        log_event(
            logger, "info", EVENT_ENGINE_STARTED,
            source=self.source_name,
            channels=len(self._channels),
        )

    async def stop(self) -> None:
        """Cancel timers, in-flight fetches and channels; release the HTTP client."""
        await self._scheduler.stop()
        channels, self._channels = self._channels, []
        for channel in channels:
            await channel.close()
        aclose = getattr(self._source, "aclose", None)
        if callable(aclose):
            await aclose()
        log_event(logger, "info", EVENT_ENGINE_STOPPED, source=self.source_name)

    async def refresh(self) -> None:
        """Fetch every source now and wait for the merges to land."""
        await asyncio.gather(*self._scheduler.refresh(), return_exceptions=True)

    def set_visibility(self, visible: bool) -> None:
        self._scheduler.set_visibility(visible)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def _store(self, kind: RecordKind) -> RollingStore[Any]:
        return self._posts if kind is RecordKind.posts else self._influencers

    def ingest(self, kind: RecordKind, event: IngestionEvent[Any]) -> None:
        """Apply one ingestion event to the store for *kind*."""
        self._store(kind).merge(event)

    def _normalize(self, kind: RecordKind, raw: Sequence[Mapping[str, Any]]) -> tuple[Any, ...]:
        if kind is RecordKind.posts:
            return tuple(normalize_posts(raw))
        return tuple(normalize_influencers(raw))

    def _on_push(self, kind: RecordKind, items: Sequence[Mapping[str, Any]]) -> None:
        self.ingest(kind, Push(self._normalize(kind, items)))

    async def _fetch(self, kind: RecordKind) -> None:
        """Fetch, normalize and merge one source; failure yields an empty batch."""
        log_event(logger, "debug", EVENT_SOURCE_FETCH_START, source=self.source_name, kind=kind)
        try:
            async with asyncio.timeout(self.config.request_timeout_seconds):
                if kind is RecordKind.posts:
                    raw = await self._source.fetch_recent_posts(self.config.post_fetch_limit)
                else:
                    raw = await self._source.fetch_influencers(self.config.influencer_fetch_limit)
            records = self._normalize(kind, raw)
        except Exception as exc:
            normalize_fetch_error(exc, source=self.source_name, kind=kind)
            self.ingest(kind, Poll((), fetched_at=None))
            return

        log_event(
            logger, "info", EVENT_SOURCE_FETCH_SUCCEEDED,
            source=self.source_name, kind=kind, raw=len(raw), records=len(records),
        )
        self.ingest(kind, Poll(records))

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def get_snapshot(self) -> EngineSnapshot:
        posts = self._posts.state()
        influencers = self._influencers.state()
        stamps = [s for s in (posts.last_updated, influencers.last_updated) if s is not None]
        return EngineSnapshot(
            posts=posts.records,
            influencers=influencers.records,
            last_updated=max(stamps) if stamps else None,
        )

    def get_mindshare_snapshot(self) -> MindshareSnapshot:
        return compute_mindshare(self._posts.snapshot(), self._influencers.snapshot())

    def get_narratives(
        self,
        top_n: int | None = None,
        sentiment: SentimentLabel | None = None,
    ) -> list[NarrativeAggregate]:
        narratives = build_narratives(
            self._posts.snapshot(), _positive_count("top_n", top_n, self.config.narrative_top_n),
        )
        if sentiment is not None:
            narratives = filter_narratives(narratives, sentiment)
        return narratives

    def get_narrative_summary(self) -> NarrativeSummary:
        return summarize_narratives(self.get_narratives())

    def get_trending_topics(self, top_n: int | None = None) -> list[TrendingTopic]:
        count = _positive_count("top_n", top_n, self.config.trending_top_n)
        return rank_trending_topics(self._posts.snapshot(), count)

    def get_latest_posts(
        self,
        limit: int = DEFAULT_LATEST_LIMIT,
        platform: str | None = None,
    ) -> list[LatestPost]:
        limit = _positive_count("limit", limit, DEFAULT_LATEST_LIMIT)
        return latest_posts(self._posts.snapshot(), limit, platform)

    def get_influencer_leaderboard(
        self,
        query: str = "",
        sort_key: LeaderboardSort = LeaderboardSort.impact,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
    ) -> list[LeaderboardRow]:
        limit = _positive_count("limit", limit, DEFAULT_LEADERBOARD_LIMIT)
        return influencer_leaderboard(self._influencers.snapshot(), query, sort_key, limit)

    def get_influencer_posts(self, limit: int = DEFAULT_LATEST_LIMIT) -> list[LatestPost]:
        limit = _positive_count("limit", limit, DEFAULT_LATEST_LIMIT)
        matched = posts_by_influencers(self._posts.snapshot(), self._influencers.snapshot())
        return latest_posts(matched, limit)
