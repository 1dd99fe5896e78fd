"""Deterministic engagement aggregation for social posts.

Sources vary in which engagement fields they populate, so per-record
engagement is the sum of whichever known fields are present (absent → 0).

Heavy-tailed counts are made comparable to percentage-scale metrics with
capped log scaling:

    log_scale(n, k) = clamp(log10(1 + n) * k, 0, 100)

The aggregate ``scaled`` value applies ``log_scale`` to the per-post average
with ``k = ENGAGEMENT_SCALE_K``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from mindshare.models.records import CanonicalPost, saturating_sum

# ---------------------------------------------------------------------------
# Constants – single source of truth for engagement field names
# ---------------------------------------------------------------------------

# Grouped by the canonical field each raw field folds into.
LIKE_FIELDS: tuple[str, ...] = ("likes", "like_count")
SHARE_FIELDS: tuple[str, ...] = ("retweets", "retweet_count", "quote_count", "shares")
COMMENT_FIELDS: tuple[str, ...] = ("comments", "reply_count")
INTERACTION_FIELDS: tuple[str, ...] = ("engagement", "engagement_score", "interactions_24h")

ENGAGEMENT_FIELDS: tuple[str, ...] = (
    "engagement",
    "engagement_score",
    "likes",
    "like_count",
    "retweets",
    "retweet_count",
    "quote_count",
    "shares",
    "comments",
    "reply_count",
    "interactions_24h",
)

ENGAGEMENT_SCALE_K = 40.0


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngagementAggregate:
    """Engagement totals over a set of records.

    Attributes:
        total: Sum of per-record engagement.
        per_record: ``total / count`` (0 for an empty set).
        scaled: Log-compressed ``per_record`` in [0, 100].
        count: Number of records aggregated.
    """

    total: float
    per_record: float
    scaled: float
    count: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def coerce_number(value: object) -> float:
    """Coerce a loosely-typed numeric value; NaN, infinities and junk become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def log_scale(value: float, k: float) -> float:
    """Return ``clamp(log10(1 + value) * k, 0, 100)``; non-positive input → 0."""
    if value <= 0:
        return 0.0
    return clamp(math.log10(1 + value) * k)


def sum_fields(payload: Mapping[str, object], fields: Iterable[str]) -> float:
    """Sum the coerced values of *fields* present in *payload*; always finite."""
    return saturating_sum(coerce_number(payload.get(name)) for name in fields)


def raw_engagement(payload: Mapping[str, object]) -> float:
    """Per-record engagement straight from a raw source payload."""
    return sum_fields(payload, ENGAGEMENT_FIELDS)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def aggregate_engagement(
    posts: Iterable[CanonicalPost],
    *,
    k: float = ENGAGEMENT_SCALE_K,
) -> EngagementAggregate:
    """Aggregate total, per-record average and scaled engagement."""
    total = 0.0
    count = 0
    for post in posts:
        total = saturating_sum((total, post.engagement))
        count += 1

    per_record = total / count if count else 0.0
    return EngagementAggregate(
        total=total,
        per_record=per_record,
        scaled=log_scale(per_record, k),
        count=count,
    )


def aggregate_by_author(
    posts: Iterable[CanonicalPost],
    *,
    k: float = ENGAGEMENT_SCALE_K,
) -> dict[str, EngagementAggregate]:
    """Aggregate engagement per author id; posts without an author are skipped.

    Authors appear in first-seen order.
    """
    grouped: dict[str, list[CanonicalPost]] = {}
    for post in posts:
        if not post.author_id:
            continue
        grouped.setdefault(post.author_id, []).append(post)
    return {author: aggregate_engagement(items, k=k) for author, items in grouped.items()}
