"""Canonical record types produced by the ingestion normalizer.

Records are immutable once constructed and are discarded when evicted from
a rolling store.
"""

from __future__ import annotations

import math
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum


def saturating_sum(values: Iterable[float]) -> float:
    """Sum finite *values*, clamping overflow to the largest finite float.

    A total that is not a number (opposite overflows) becomes 0.
    """
    total = sum(values, 0.0)
    if math.isnan(total):
        return 0.0
    return max(-sys.float_info.max, min(sys.float_info.max, total))


class RecordKind(StrEnum):
    """The two collections the engine keeps."""

    posts = "posts"
    influencers = "influencers"


@dataclass(frozen=True)
class CanonicalPost:
    """Normalized social post.

    Attributes:
        tags: Lowercased, ``#``-prefixed topic tags without duplicates, in
            first-seen order: explicit tags, then text hashtags.
        interactions: Provider-computed engagement (``engagement``,
            ``engagement_score``, ``interactions_24h``) not split by type.
        sentiment_raw: Raw provider score on either a [-1, 1] or [0, 100]
            scale; ``None`` when the source supplied none.
    """

    id: str
    platform: str
    text: str
    tags: tuple[str, ...] = ()
    author_id: str = ""
    likes: float = 0.0
    shares: float = 0.0
    comments: float = 0.0
    interactions: float = 0.0
    sentiment_raw: float | None = None
    timestamp_ms: int = 0
    title: str = ""
    url: str = ""
    author_name: str = ""

    @property
    def engagement(self) -> float:
        """Sum of every engagement field the source populated; always finite."""
        return saturating_sum((self.likes, self.shares, self.comments, self.interactions))


@dataclass(frozen=True)
class CanonicalInfluencer:
    """Normalized creator / influencer profile."""

    id: str
    name: str
    avatar_url: str = ""
    follower_count: float = 0.0
    interactions_24h: float = 0.0
    rank: int = 0
