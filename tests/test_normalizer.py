"""Tests for the ingestion normalizer."""

import logging

import pytest
from mindshare.core.errors import ParseError
from mindshare.services.normalizer import (
    InfluencerShape,
    PostShape,
    detect_influencer_shape,
    detect_post_shape,
    extract_hashtags,
    normalize_influencer,
    normalize_influencers,
    normalize_post,
    normalize_posts,
    normalize_tags,
    parse_timestamp_ms,
)

_NOW = 1_750_000_000_000

LUNARCRUSH_POST = {
    "id": "1789",
    "post_type": "tweet",
    "post_title": "BONK is back #BONK #Solana",
    "post_created": 1_700_000_000,
    "post_link": "https://x.com/bonk/status/1789",
    "post_sentiment": 3.4,
    "creator_id": "Twitter::ABC",
    "creator_display_name": "Bonk Fan",
    "interactions_24h": 250,
}

GENERIC_POST = {
    "id": 42,
    "text": "gm #bonk frens",
    "tags": ["meme", "#Community"],
    "likes": "10",
    "retweets": 4,
    "reply_count": 1,
    "sentiment": 0.6,
    "username": "MemeLord",
    "timestamp": "2024-01-01T00:00:00Z",
}


# ---------------------------------------------------------------------------
# Shape detection
# ---------------------------------------------------------------------------


class TestShapeDetection:
    def test_lunarcrush_post(self) -> None:
        assert detect_post_shape(LUNARCRUSH_POST) is PostShape.lunarcrush

    def test_generic_post(self) -> None:
        assert detect_post_shape(GENERIC_POST) is PostShape.generic

    def test_creator_influencer(self) -> None:
        assert detect_influencer_shape({"creator_id": "1"}) is InfluencerShape.creator

    def test_profile_influencer(self) -> None:
        assert detect_influencer_shape({"handle": "@x"}) is InfluencerShape.profile


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class TestNormalizePost:
    def test_lunarcrush_fields(self) -> None:
        post = normalize_post(LUNARCRUSH_POST, now=_NOW)
        assert post.id == "1789"
        assert post.platform == "tweet"
        assert post.text == "BONK is back #BONK #Solana"
        assert post.tags == ("#bonk", "#solana")
        assert post.author_id == "twitter::abc"
        assert post.author_name == "Bonk Fan"
        assert post.interactions == 250
        assert post.engagement == 250
        assert post.sentiment_raw == 3.4
        assert post.timestamp_ms == 1_700_000_000_000
        assert post.url == "https://x.com/bonk/status/1789"

    def test_generic_fields(self) -> None:
        post = normalize_post(GENERIC_POST, now=_NOW)
        assert post.id == "42"
        assert post.platform == "Social"
        assert post.tags == ("#meme", "#community", "#bonk")
        assert post.likes == 10
        assert post.shares == 4
        assert post.comments == 1
        assert post.engagement == 15
        assert post.author_id == "memelord"
        assert post.timestamp_ms == 1_704_067_200_000

    def test_text_falls_back_to_title(self) -> None:
        post = normalize_post({"id": "t", "title": "Headline #news"}, now=_NOW)
        assert post.text == "Headline #news"
        assert "#news" in post.tags

    def test_integral_float_id(self) -> None:
        assert normalize_post({"id": 7.0}, now=_NOW).id == "7"

    def test_missing_sentiment_stays_none(self) -> None:
        assert normalize_post({"id": "x"}, now=_NOW).sentiment_raw is None

    def test_missing_timestamp_uses_now(self) -> None:
        assert normalize_post({"id": "x"}, now=_NOW).timestamp_ms == _NOW

    @pytest.mark.parametrize("payload", [{}, {"id": None}, {"id": "   "}, {"text": "no id"}])
    def test_missing_id_raises(self, payload: dict) -> None:
        with pytest.raises(ParseError):
            normalize_post(payload, now=_NOW)

    def test_non_mapping_raises(self) -> None:
        with pytest.raises(ParseError):
            normalize_post(["id", "1"], now=_NOW)


class TestNormalizePosts:
    def test_skips_malformed_and_keeps_order(self) -> None:
        posts = normalize_posts(
            [{"id": "a"}, {"text": "orphan"}, "junk", {"id": "b"}], now=_NOW,
        )
        assert [p.id for p in posts] == ["a", "b"]

    def test_logs_dropped_records(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="mindshare.services.normalizer"):
            normalize_posts([{"text": "orphan"}], now=_NOW)
        assert "record_parse_failed" in caplog.text
        assert "orphan" not in caplog.text

    def test_keeps_duplicates_for_the_store_to_resolve(self) -> None:
        posts = normalize_posts([{"id": "a"}, {"id": "a"}], now=_NOW)
        assert len(posts) == 2


# ---------------------------------------------------------------------------
# Influencers
# ---------------------------------------------------------------------------


class TestNormalizeInfluencer:
    def test_creator_shape(self) -> None:
        influencer = normalize_influencer({
            "creator_id": "99",
            "creator_name": "bonkguy",
            "creator_avatar": "https://img/1.png",
            "creator_followers": "1000",
            "creator_rank": 3,
            "interactions_24h": 500,
        })
        assert influencer.id == "99"
        assert influencer.name == "bonkguy"
        assert influencer.avatar_url == "https://img/1.png"
        assert influencer.follower_count == 1000
        assert influencer.interactions_24h == 500
        assert influencer.rank == 3

    def test_creator_name_as_id(self) -> None:
        assert normalize_influencer({"creator_name": "solo"}).id == "solo"

    def test_profile_shape(self) -> None:
        influencer = normalize_influencer({
            "handle": "@meme_lord",
            "display_name": "Meme Lord",
            "followers": 95000,
            "engagement": 68,
        })
        assert influencer.id == "@meme_lord"
        assert influencer.name == "Meme Lord"
        assert influencer.follower_count == 95000
        assert influencer.interactions_24h == 68

    def test_batch_drops_records_without_id(self) -> None:
        result = normalize_influencers([{"followers": 10}, {"username": "ok"}])
        assert [i.id for i in result] == ["ok"]


# ---------------------------------------------------------------------------
# Tags and timestamps
# ---------------------------------------------------------------------------


class TestTags:
    def test_extract_hashtags_counts_every_occurrence(self) -> None:
        assert extract_hashtags("#A and #a then #b_c") == ["#a", "#a", "#b_c"]

    def test_comma_separated_explicit_tags(self) -> None:
        assert normalize_tags("foo, #Bar,", "") == ("#foo", "#bar")

    def test_union_with_text(self) -> None:
        assert normalize_tags(["x"], "about #y #X") == ("#x", "#y")

    def test_unsupported_explicit_type_ignored(self) -> None:
        assert normalize_tags(12, "") == ()

    def test_non_string_explicit_entries_skipped(self) -> None:
        assert normalize_tags([None, 7, "#ok", {"x": 1}], "") == ("#ok",)

    def test_null_tag_never_becomes_a_tag(self) -> None:
        post = normalize_post({"id": "n", "tags": [None, "bonk"]}, now=_NOW)
        assert post.tags == ("#bonk",)


class TestParseTimestamp:
    def test_epoch_seconds(self) -> None:
        assert parse_timestamp_ms(1_700_000_000, now=_NOW) == 1_700_000_000_000

    def test_epoch_millis(self) -> None:
        assert parse_timestamp_ms(1_700_000_000_123, now=_NOW) == 1_700_000_000_123

    def test_numeric_string(self) -> None:
        assert parse_timestamp_ms("1700000000", now=_NOW) == 1_700_000_000_000

    def test_iso_string(self) -> None:
        assert parse_timestamp_ms("2024-01-01T00:00:00Z", now=_NOW) == 1_704_067_200_000

    def test_naive_string_is_utc(self) -> None:
        assert parse_timestamp_ms("2024-01-01 00:00:00", now=_NOW) == 1_704_067_200_000

    @pytest.mark.parametrize("value", [None, "", "not a date", True, float("nan"), object()])
    def test_unparsable_falls_back_to_now(self, value: object) -> None:
        assert parse_timestamp_ms(value, now=_NOW) == _NOW
