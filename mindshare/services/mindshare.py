"""Composite mindshare scoring over the current rolling-store snapshot.

Formula
-------
With ``f(n, k) = clamp(log10(1 + n) * k, 0, 100)``:

    volume     = f(social_mentions, 20)
    reach      = f(influencer_mentions, 28)
    engagement = engagement_aggregate.scaled
    breadth    = clamp(100 * distinct_authors / social_mentions, 0, 100)

    score = 0.30 * volume + 0.25 * reach + 0.25 * engagement + 0.20 * breadth

``change_pct`` compares item counts of the earliest and latest quartile of
the most-recent-first collection.  It is a list-position proxy for volume
acceleration, not a time-series trend: the store is not evenly sampled in
time, and equal-width slices always hold equal counts.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from mindshare.models.records import CanonicalInfluencer, CanonicalPost
from mindshare.models.signals import MindshareSnapshot
from mindshare.services.engagement import aggregate_engagement, clamp, log_scale

# ---------------------------------------------------------------------------
# Constants – single source of truth for weights and log factors
# ---------------------------------------------------------------------------

WEIGHTS: dict[str, float] = {
    "social_volume": 0.30,
    "influencer_reach": 0.25,
    "engagement": 0.25,
    "brand_awareness": 0.20,
}

SOCIAL_VOLUME_K = 20.0
INFLUENCER_REACH_K = 28.0

CHANGE_MIN_ITEMS = 20


def brand_awareness(posts: Sequence[CanonicalPost]) -> float:
    """Percentage of distinct (case-insensitive) authors among sampled posts."""
    if not posts:
        return 0.0
    authors = {post.author_id.lower() for post in posts if post.author_id}
    return clamp(100.0 * len(authors) / len(posts))


def quartile_change_pct(posts: Sequence[object]) -> float:
    """Percent change between the earliest and latest quartile item counts.

    Requires at least ``CHANGE_MIN_ITEMS`` items, otherwise 0.
    """
    if len(posts) < CHANGE_MIN_ITEMS:
        return 0.0
    q = len(posts) // 4
    late = len(posts[:q])
    early = len(posts[-q:])
    return round(100.0 * (late - early) / max(early, 1), 1)


def compute_mindshare(
    posts: Sequence[CanonicalPost],
    influencers: Sequence[CanonicalInfluencer],
    *,
    computed_at: datetime | None = None,
) -> MindshareSnapshot:
    """Compute a :class:`MindshareSnapshot` from the current collections."""
    social_mentions = len(posts)
    influencer_mentions = len(influencers)
    engagement = aggregate_engagement(posts)
    awareness = brand_awareness(posts)

    components = {
        "social_volume": log_scale(social_mentions, SOCIAL_VOLUME_K),
        "influencer_reach": log_scale(influencer_mentions, INFLUENCER_REACH_K),
        "engagement": engagement.scaled,
        "brand_awareness": awareness,
    }
    breakdown = {name: WEIGHTS[name] * value for name, value in components.items()}
    score = round(clamp(sum(breakdown.values())), 1)

    return MindshareSnapshot(
        score=score,
        change_pct=quartile_change_pct(posts),
        social_mentions=social_mentions,
        influencer_mentions=influencer_mentions,
        engagement_avg=engagement.per_record,
        brand_awareness_pct=awareness,
        computed_at=computed_at or datetime.now(timezone.utc),
        breakdown=breakdown,
    )
