"""Narrative extraction: group posts by topic tag and rank the groups.

Each tag in a post's tag set accumulates into that tag's bucket.  Strength is
relative: ``round(100 * avg_engagement / max_avg_engagement)``, so the top
bucket always scores 100.  When no bucket has any engagement, every bucket
ties at 100.  Buckets are created in first-seen order, following each post's
own tag order, and ranking is a stable sort, so ties keep that order.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from mindshare.models.records import CanonicalPost, saturating_sum
from mindshare.models.signals import NarrativeAggregate, NarrativeSummary, SentimentLabel, Trend
from mindshare.services.sentiment import classify

DEFAULT_TOP_N = 12
TREND_UP_MIN_STRENGTH = 60
TREND_DOWN_MAX_STRENGTH = 30

_HOUR_MS = 3_600_000


@dataclass
class _Bucket:
    mentions: int = 0
    engagement: float = 0.0
    sentiment_sum: float = 0.0
    sources: dict[str, None] = field(default_factory=dict)
    timestamps: list[int] = field(default_factory=list)


def trend_for_strength(strength: int) -> Trend:
    if strength >= TREND_UP_MIN_STRENGTH:
        return Trend.up
    if strength <= TREND_DOWN_MAX_STRENGTH:
        return Trend.down
    return Trend.stable


def timeframe_label(timestamps: Sequence[int], *, now_ms: int | None = None) -> str:
    """Coarse recency label from the newest timestamp: ``"5h"`` or ``"3d"``."""
    if not timestamps:
        return "recent"
    now = now_ms if now_ms is not None else int(time.time() * 1000)
    hours = max(0, (now - max(timestamps)) // _HOUR_MS)
    return f"{hours}h" if hours < 24 else f"{hours // 24}d"


def _title_for_tag(tag: str) -> str:
    return tag.lstrip("#").replace("-", " ").replace("_", " ").upper()


def build_narratives(
    posts: Iterable[CanonicalPost],
    top_n: int = DEFAULT_TOP_N,
    *,
    now_ms: int | None = None,
) -> list[NarrativeAggregate]:
    """Aggregate posts into tag buckets, ranked by strength, top *top_n*."""
    buckets: dict[str, _Bucket] = {}
    for post in posts:
        if not post.tags:
            continue
        engagement = max(0.0, post.engagement)
        sentiment = post.sentiment_raw if post.sentiment_raw is not None else 0.0
        for tag in post.tags:
            bucket = buckets.setdefault(tag, _Bucket())
            bucket.mentions += 1
            bucket.engagement = saturating_sum((bucket.engagement, engagement))
            bucket.sentiment_sum += sentiment
            bucket.sources[post.platform] = None
            bucket.timestamps.append(post.timestamp_ms)

    if not buckets:
        return []

    averages = {tag: b.engagement / b.mentions for tag, b in buckets.items()}
    max_avg = max(averages.values())

    narratives: list[NarrativeAggregate] = []
    for tag, bucket in buckets.items():
        avg = averages[tag]
        strength = round(100 * (avg / max_avg)) if max_avg > 0 else 100
        narratives.append(
            NarrativeAggregate(
                tag=tag,
                title=_title_for_tag(tag),
                mention_count=bucket.mentions,
                total_engagement=bucket.engagement,
                avg_engagement=avg,
                avg_sentiment_label=classify(bucket.sentiment_sum / bucket.mentions),
                sources=frozenset(bucket.sources),
                timestamps=tuple(bucket.timestamps),
                strength=strength,
                trend=trend_for_strength(strength),
                timeframe_label=timeframe_label(bucket.timestamps, now_ms=now_ms),
            )
        )

    narratives.sort(key=lambda n: n.strength, reverse=True)
    return narratives[:top_n]


def filter_narratives(
    narratives: Iterable[NarrativeAggregate],
    label: SentimentLabel,
) -> list[NarrativeAggregate]:
    """Narratives whose average sentiment carries *label*."""
    return [n for n in narratives if n.avg_sentiment_label == label]


def summarize_narratives(narratives: Sequence[NarrativeAggregate]) -> NarrativeSummary:
    """Headline figures: dominant narrative, total mentions, averages."""
    if not narratives:
        return NarrativeSummary()

    dominant = max(narratives, key=lambda n: n.strength)
    positive = filter_narratives(narratives, SentimentLabel.positive)
    return NarrativeSummary(
        dominant_tag=dominant.tag,
        dominant_strength=dominant.strength,
        total_mentions=sum(n.mention_count for n in narratives),
        avg_engagement=round(
            sum(round(n.avg_engagement) for n in narratives) / len(narratives)
        ),
        positive_pct=round(100 * len(positive) / len(narratives)),
    )
