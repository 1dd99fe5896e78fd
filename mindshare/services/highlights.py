"""Display-oriented views over the rolling collections.

Pure functions: latest-post rows, the creator leaderboard and the
posts-by-tracked-creators filter.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from enum import StrEnum

from mindshare.models.records import CanonicalInfluencer, CanonicalPost
from mindshare.models.signals import LatestPost, LeaderboardRow
from mindshare.services.sentiment import classify

DEFAULT_LATEST_LIMIT = 12
DEFAULT_LEADERBOARD_LIMIT = 20
SUMMARY_LENGTH = 200
TRENDING_ROWS = 5


class LeaderboardSort(StrEnum):
    """Leaderboard ordering: 24h interactions (``impact``) or followers."""

    impact = "impact"
    followers = "followers"


_SORT_KEYS: dict[LeaderboardSort, Callable[[LeaderboardRow], float]] = {
    LeaderboardSort.impact: lambda row: row.impact,
    LeaderboardSort.followers: lambda row: row.followers,
}


def _summary(text: str) -> str:
    if len(text) <= SUMMARY_LENGTH:
        return text
    return text[:SUMMARY_LENGTH].rstrip() + "…"


def latest_posts(
    posts: Sequence[CanonicalPost],
    limit: int = DEFAULT_LATEST_LIMIT,
    platform: str | None = None,
) -> list[LatestPost]:
    """Newest posts as display rows; the first few are flagged ``trending``.

    *posts* is expected most-recent-first, as the rolling store keeps it.
    """
    if platform:
        wanted = platform.lower()
        posts = [post for post in posts if post.platform.lower() == wanted]

    rows: list[LatestPost] = []
    for index, post in enumerate(posts[:limit]):
        rows.append(
            LatestPost(
                id=post.id,
                title=post.title or post.text[:80] or "Untitled",
                summary=_summary(post.text),
                category=post.platform,
                source=post.author_name or post.platform,
                timestamp_ms=post.timestamp_ms,
                url=post.url,
                trending=index < TRENDING_ROWS,
                engagement=post.engagement,
                sentiment=classify(post.sentiment_raw),
            )
        )
    return rows


def _leaderboard_row(influencer: CanonicalInfluencer) -> LeaderboardRow:
    handle = influencer.name if influencer.name.startswith("@") else f"@{influencer.name}"
    return LeaderboardRow(
        id=influencer.id,
        name=influencer.name.lstrip("@"),
        handle=handle,
        followers=influencer.follower_count,
        impact=influencer.interactions_24h,
        avatar_url=influencer.avatar_url,
        rank=influencer.rank,
    )


def influencer_leaderboard(
    influencers: Iterable[CanonicalInfluencer],
    query: str = "",
    sort_key: LeaderboardSort | str = LeaderboardSort.impact,
    limit: int = DEFAULT_LEADERBOARD_LIMIT,
) -> list[LeaderboardRow]:
    """Search, sort and cap the creator collection.

    Raises:
        ValueError: If *sort_key* is not ``impact`` or ``followers``.
    """
    key = _SORT_KEYS[LeaderboardSort(sort_key)]
    rows = [_leaderboard_row(influencer) for influencer in influencers]

    needle = query.strip().lower()
    if needle:
        rows = [
            row for row in rows
            if needle in row.name.lower() or needle in row.handle.lower()
        ]

    rows.sort(key=key, reverse=True)
    return rows[:limit]


def posts_by_influencers(
    posts: Iterable[CanonicalPost],
    influencers: Iterable[CanonicalInfluencer],
) -> list[CanonicalPost]:
    """Posts whose author is a tracked creator (matched on id or name)."""
    known: set[str] = set()
    for influencer in influencers:
        known.add(influencer.id.lower())
        if influencer.name:
            known.add(influencer.name.lstrip("@").lower())

    matched: list[CanonicalPost] = []
    for post in posts:
        author_name = post.author_name.lstrip("@").lower()
        if post.author_id in known or (author_name and author_name in known):
            matched.append(post)
    return matched
