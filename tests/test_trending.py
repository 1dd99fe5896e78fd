"""Tests for trending topic ranking."""

from mindshare.models.records import CanonicalPost
from mindshare.models.signals import Trend
from mindshare.services.trending import count_hashtags, rank_trending_topics


def _post(post_id: str, text: str, tags: tuple[str, ...] = ()) -> CanonicalPost:
    return CanonicalPost(id=post_id, platform="Social", text=text, tags=tags)


class TestCounting:
    def test_every_occurrence_in_text_counts(self) -> None:
        counts = count_hashtags([_post("1", "#bonk #BONK #sol"), _post("2", "more #bonk")])
        assert counts["#bonk"] == 3
        assert counts["#sol"] == 1

    def test_explicit_tag_absent_from_text_counts_once(self) -> None:
        counts = count_hashtags([_post("1", "no hashtags here", ("#wif",))])
        assert counts["#wif"] == 1

    def test_explicit_tag_present_in_text_not_double_counted(self) -> None:
        counts = count_hashtags([_post("1", "#BONK", ("#bonk",))])
        assert counts["#bonk"] == 1


class TestRanking:
    def test_sorted_by_mentions_with_uppercased_topic(self) -> None:
        posts = [_post("1", "#sol"), _post("2", "#bonk #bonk"), _post("3", "#bonk")]
        topics = rank_trending_topics(posts)
        assert [(t.topic, t.mentions) for t in topics] == [("BONK", 3), ("SOL", 1)]
        assert topics[0].category == "Social"

    def test_ties_keep_first_seen_order(self) -> None:
        topics = rank_trending_topics([_post("1", "#c #a #b")])
        assert [t.topic for t in topics] == ["C", "A", "B"]

    def test_first_five_up_rest_stable(self) -> None:
        text = " ".join(f"#t{i}" for i in range(7))
        topics = rank_trending_topics([_post("1", text)])
        assert [t.trend for t in topics] == [Trend.up] * 5 + [Trend.stable] * 2

    def test_default_top_n_is_eight(self) -> None:
        text = " ".join(f"#t{i}" for i in range(12))
        assert len(rank_trending_topics([_post("1", text)])) == 8
        assert len(rank_trending_topics([_post("1", text)], 3)) == 3

    def test_empty(self) -> None:
        assert rank_trending_topics([]) == []
