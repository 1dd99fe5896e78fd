"""Ingestion normalizer: raw source payloads → canonical records.

Raw payloads are an explicit sum type per source.  Each payload is first
assigned a shape (:class:`PostShape` / :class:`InfluencerShape`) and then
handed to the one normalizer function registered for that shape, so field
fallback chains live here and nowhere else.

Rules shared by every shape:

- A record without an id is discarded.
- Numbers are coerced leniently; NaN and junk become 0.
- Tags are the explicit tag list ∪ hashtags found in the text, lowercased
  and ``#``-prefixed.
- Platform defaults to ``"Social"``.
- Timestamps accept epoch seconds, epoch millis, numeric strings or date
  strings; anything unparsable becomes the current time.
"""

from __future__ import annotations

import logging
import math
import re
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from enum import StrEnum
from typing import TypeVar

from dateutil import parser as dateparser

from mindshare.core.errors import ParseError
from mindshare.core.logging import EVENT_RECORD_PARSE_FAILED, log_event
from mindshare.models.records import CanonicalInfluencer, CanonicalPost, RecordKind
from mindshare.services.engagement import (
    COMMENT_FIELDS,
    INTERACTION_FIELDS,
    LIKE_FIELDS,
    SHARE_FIELDS,
    coerce_number,
    sum_fields,
)

logger = logging.getLogger(__name__)

HASHTAG_PATTERN = re.compile(r"#\w+")
EPOCH_MILLIS_THRESHOLD = 1e12
DEFAULT_PLATFORM = "Social"
TITLE_FALLBACK_LENGTH = 80

T = TypeVar("T")


class PostShape(StrEnum):
    """Known raw post payload layouts."""

    lunarcrush = "lunarcrush"
    generic = "generic"


class InfluencerShape(StrEnum):
    """Known raw creator payload layouts."""

    creator = "creator"
    profile = "profile"


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def now_ms() -> int:
    return int(time.time() * 1000)


def _first(payload: Mapping[str, object], *keys: str) -> object | None:
    """Return the first value under *keys* that is neither ``None`` nor blank."""
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _text(payload: Mapping[str, object], *keys: str) -> str:
    value = _first(payload, *keys)
    return str(value).strip() if value is not None else ""


def _record_id(payload: Mapping[str, object], *keys: str) -> str:
    value = _first(payload, *keys)
    if value is None or isinstance(value, bool):
        raise ParseError(f"record has no id (looked for {', '.join(keys)})")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _optional_float(value: object) -> float | None:
    """Coerce *value* to float, preserving absence as ``None``."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _scale_epoch(value: float) -> int:
    return int(value * 1000) if value < EPOCH_MILLIS_THRESHOLD else int(value)


def parse_timestamp_ms(value: object, *, now: int | None = None) -> int:
    """Normalize an epoch (s or ms), numeric string or date string to epoch ms.

    Missing or unparsable values resolve to *now* (default: current time).
    """
    fallback = now if now is not None else now_ms()

    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return _scale_epoch(value) if math.isfinite(value) else fallback
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return fallback
        try:
            number = float(text)
        except ValueError:
            number = None
        if number is not None and math.isfinite(number):
            return _scale_epoch(number)
        try:
            parsed = dateparser.parse(text)
        except (ValueError, OverflowError):
            return fallback
    else:
        return fallback

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return int(parsed.timestamp() * 1000)
    except (OverflowError, OSError, ValueError):
        return fallback


def extract_hashtags(text: str) -> list[str]:
    """Return every hashtag occurrence in *text*, lowercased, in order."""
    return [match.lower() for match in HASHTAG_PATTERN.findall(text or "")]


def _normalize_tag(raw: object) -> str:
    if not isinstance(raw, str):
        return ""
    tag = raw.strip().lower()
    if not tag or tag == "#":
        return ""
    return tag if tag.startswith("#") else f"#{tag}"


def normalize_tags(explicit: object, text: str) -> tuple[str, ...]:
    """Explicit tags (list or comma-separated string), then text hashtags.

    Duplicates are dropped keeping the first occurrence; non-string entries in
    an explicit list are skipped.
    """
    if isinstance(explicit, str):
        candidates: Iterable[object] = explicit.split(",")
    elif isinstance(explicit, (list, tuple, set, frozenset)):
        candidates = explicit
    else:
        candidates = ()

    tags = [_normalize_tag(raw) for raw in candidates]
    tags.extend(extract_hashtags(text))
    return tuple(tag for tag in dict.fromkeys(tags) if tag)


# ---------------------------------------------------------------------------
# Shape detection
# ---------------------------------------------------------------------------

_LUNARCRUSH_POST_KEYS = ("post_title", "post_created", "post_link", "post_sentiment")


def detect_post_shape(payload: Mapping[str, object]) -> PostShape:
    if any(key in payload for key in _LUNARCRUSH_POST_KEYS):
        return PostShape.lunarcrush
    return PostShape.generic


def detect_influencer_shape(payload: Mapping[str, object]) -> InfluencerShape:
    if any(str(key).startswith("creator_") for key in payload):
        return InfluencerShape.creator
    return InfluencerShape.profile


# ---------------------------------------------------------------------------
# Per-shape normalizers
# ---------------------------------------------------------------------------


def _normalize_lunarcrush_post(payload: Mapping[str, object], now: int) -> CanonicalPost:
    text = _text(payload, "post_title", "text", "title")
    author_id = _text(payload, "creator_id", "creator_name")
    return CanonicalPost(
        id=_record_id(payload, "id", "post_id"),
        platform=_text(payload, "platform", "post_type", "network") or DEFAULT_PLATFORM,
        text=text,
        tags=normalize_tags(payload.get("tags"), text),
        author_id=author_id.lower(),
        likes=sum_fields(payload, LIKE_FIELDS),
        shares=sum_fields(payload, SHARE_FIELDS),
        comments=sum_fields(payload, COMMENT_FIELDS),
        interactions=sum_fields(payload, INTERACTION_FIELDS),
        sentiment_raw=_optional_float(_first(payload, "post_sentiment", "sentiment")),
        timestamp_ms=parse_timestamp_ms(_first(payload, "post_created", "created_at"), now=now),
        title=text[:TITLE_FALLBACK_LENGTH],
        url=_text(payload, "post_link", "url"),
        author_name=_text(payload, "creator_display_name", "creator_name"),
    )


def _normalize_generic_post(payload: Mapping[str, object], now: int) -> CanonicalPost:
    text = _text(payload, "text", "title")
    title = _text(payload, "title") or text[:TITLE_FALLBACK_LENGTH]
    author_id = _text(payload, "creator_id", "author_id", "username", "handle", "user_id")
    return CanonicalPost(
        id=_record_id(payload, "id", "post_id"),
        platform=_text(payload, "platform", "network") or DEFAULT_PLATFORM,
        text=text,
        tags=normalize_tags(payload.get("tags"), text),
        author_id=author_id.lower(),
        likes=sum_fields(payload, LIKE_FIELDS),
        shares=sum_fields(payload, SHARE_FIELDS),
        comments=sum_fields(payload, COMMENT_FIELDS),
        interactions=sum_fields(payload, INTERACTION_FIELDS),
        sentiment_raw=_optional_float(_first(payload, "sentiment", "average_sentiment")),
        timestamp_ms=parse_timestamp_ms(
            _first(payload, "timestamp", "time", "created_at", "created"), now=now,
        ),
        title=title,
        url=_text(payload, "url", "link"),
        author_name=_text(payload, "creator_name", "author_name", "display_name", "username", "handle"),
    )


def _normalize_creator(payload: Mapping[str, object]) -> CanonicalInfluencer:
    record_id = _record_id(payload, "creator_id", "id", "creator_name")
    return CanonicalInfluencer(
        id=record_id,
        name=_text(payload, "creator_name", "creator_display_name") or record_id,
        avatar_url=_text(payload, "creator_avatar"),
        follower_count=coerce_number(payload.get("creator_followers")),
        interactions_24h=coerce_number(payload.get("interactions_24h")),
        rank=int(coerce_number(payload.get("creator_rank"))),
    )


def _normalize_profile(payload: Mapping[str, object]) -> CanonicalInfluencer:
    record_id = _record_id(payload, "id", "username", "handle")
    return CanonicalInfluencer(
        id=record_id,
        name=_text(payload, "display_name", "name", "username", "handle") or record_id,
        avatar_url=_text(payload, "avatar_url", "avatar", "profile_image"),
        follower_count=coerce_number(_first(payload, "followers", "followers_count")),
        interactions_24h=coerce_number(
            _first(payload, "interactions_24h", "engagement", "engagement_score"),
        ),
        rank=int(coerce_number(payload.get("rank"))),
    )


_POST_NORMALIZERS: dict[PostShape, Callable[[Mapping[str, object], int], CanonicalPost]] = {
    PostShape.lunarcrush: _normalize_lunarcrush_post,
    PostShape.generic: _normalize_generic_post,
}

_INFLUENCER_NORMALIZERS: dict[InfluencerShape, Callable[[Mapping[str, object]], CanonicalInfluencer]] = {
    InfluencerShape.creator: _normalize_creator,
    InfluencerShape.profile: _normalize_profile,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_post(payload: object, *, now: int | None = None) -> CanonicalPost:
    """Normalize one raw post payload.

    Raises:
        ParseError: If *payload* is not a mapping or carries no id.
    """
    if not isinstance(payload, Mapping):
        raise ParseError(f"expected a mapping, got {type(payload).__name__}")
    shape = detect_post_shape(payload)
    return _POST_NORMALIZERS[shape](payload, now if now is not None else now_ms())


def normalize_influencer(payload: object) -> CanonicalInfluencer:
    """Normalize one raw creator payload.

    Raises:
        ParseError: If *payload* is not a mapping or carries no id.
    """
    if not isinstance(payload, Mapping):
        raise ParseError(f"expected a mapping, got {type(payload).__name__}")
    shape = detect_influencer_shape(payload)
    return _INFLUENCER_NORMALIZERS[shape](payload)


def _normalize_batch(
    payloads: Iterable[object],
    normalize: Callable[[object], T],
    kind: RecordKind,
) -> list[T]:
    records: list[T] = []
    for index, payload in enumerate(payloads):
        try:
            records.append(normalize(payload))
        except ParseError as exc:
            log_event(
                logger, "debug", EVENT_RECORD_PARSE_FAILED,
                kind=kind, index=index, reason=exc,
            )
    return records


def normalize_posts(payloads: Iterable[object], *, now: int | None = None) -> list[CanonicalPost]:
    """Normalize a raw post batch, dropping malformed records."""
    batch_now = now if now is not None else now_ms()
    return _normalize_batch(
        payloads, lambda payload: normalize_post(payload, now=batch_now), RecordKind.posts,
    )


def normalize_influencers(payloads: Iterable[object]) -> list[CanonicalInfluencer]:
    """Normalize a raw creator batch, dropping malformed records."""
    return _normalize_batch(payloads, normalize_influencer, RecordKind.influencers)
