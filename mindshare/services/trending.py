"""Trending topic ranking by raw hashtag frequency.

Every hashtag occurrence in a post's text counts, so a post repeating a tag
counts it more than once.  Explicit tags that never appear in the text
count once per post.

Trend labels are positional: the first ``UP_SLOTS`` topics are ``up`` and
the rest ``stable``.  No historical comparison is made.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from mindshare.models.records import CanonicalPost
from mindshare.models.signals import TrendingTopic, Trend
from mindshare.services.normalizer import extract_hashtags

DEFAULT_TOP_N = 8
UP_SLOTS = 5


def count_hashtags(posts: Iterable[CanonicalPost]) -> Counter[str]:
    """Hashtag occurrence counts in first-seen order."""
    counts: Counter[str] = Counter()
    for post in posts:
        in_text = extract_hashtags(post.text)
        counts.update(in_text)
        seen = set(in_text)
        for tag in post.tags:
            if tag not in seen:
                counts[tag] += 1
    return counts


def rank_trending_topics(
    posts: Iterable[CanonicalPost],
    top_n: int = DEFAULT_TOP_N,
) -> list[TrendingTopic]:
    """Return the *top_n* most frequent hashtags, most frequent first."""
    counts = count_hashtags(posts)
    # sorted() is stable, so equal counts keep first-seen order.
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:top_n]
    return [
        TrendingTopic(
            topic=tag.lstrip("#").upper(),
            mentions=mentions,
            trend=Trend.up if index < UP_SLOTS else Trend.stable,
        )
        for index, (tag, mentions) in enumerate(ranked)
    ]
