"""Pydantic models for derived signals returned by the engine's read API.

Every model here is recomputed from the current rolling-store snapshot on
each query; none are persisted or patched incrementally.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from mindshare.models.records import CanonicalInfluencer, CanonicalPost


class SentimentLabel(StrEnum):
    """Tri-state sentiment label."""

    positive = "positive"
    neutral = "neutral"
    negative = "negative"


class Trend(StrEnum):
    """Coarse direction of a narrative or topic."""

    up = "up"
    down = "down"
    stable = "stable"


class MindshareSnapshot(BaseModel):
    """Composite 0–100 mindshare score with its inputs."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(..., ge=0, le=100)
    change_pct: float = 0.0
    social_mentions: int = 0
    influencer_mentions: int = 0
    engagement_avg: float = 0.0
    brand_awareness_pct: float = Field(default=0.0, ge=0, le=100)
    computed_at: datetime
    breakdown: dict[str, float] = Field(default_factory=dict)


class NarrativeAggregate(BaseModel):
    """Posts sharing one topic tag, aggregated and ranked by relative strength."""

    model_config = ConfigDict(frozen=True)

    tag: str
    title: str
    mention_count: int
    total_engagement: float
    avg_engagement: float
    avg_sentiment_label: SentimentLabel
    sources: frozenset[str] = frozenset()
    timestamps: tuple[int, ...] = ()
    strength: int = Field(..., ge=0, le=100)
    trend: Trend
    timeframe_label: str


class NarrativeSummary(BaseModel):
    """Headline figures across the ranked narratives."""

    model_config = ConfigDict(frozen=True)

    dominant_tag: str | None = None
    dominant_strength: int = 0
    total_mentions: int = 0
    avg_engagement: int = 0
    positive_pct: int = 0


class TrendingTopic(BaseModel):
    """A hashtag ranked by raw mention frequency."""

    model_config = ConfigDict(frozen=True)

    topic: str
    mentions: int
    trend: Trend
    category: str = "Social"


class LatestPost(BaseModel):
    """Display row for the newest posts in the collection."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    summary: str
    category: str
    source: str
    timestamp_ms: int
    url: str = ""
    trending: bool = False
    engagement: float = 0.0
    sentiment: SentimentLabel = SentimentLabel.neutral


class LeaderboardRow(BaseModel):
    """Creator leaderboard row."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    handle: str
    followers: float
    impact: float
    avatar_url: str = ""
    rank: int = 0


@dataclass(frozen=True)
class EngineSnapshot:
    """Current contents of both rolling collections.

    ``last_updated`` is the time of the newest merge that carried fresh data;
    presentation layers compare it against "now" to flag staleness.
    """

    posts: tuple[CanonicalPost, ...] = ()
    influencers: tuple[CanonicalInfluencer, ...] = ()
    last_updated: datetime | None = None
