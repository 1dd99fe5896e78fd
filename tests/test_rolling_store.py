"""Tests for the deduplicating rolling store."""

from datetime import UTC, datetime

import pytest
from mindshare.core.errors import ConfigError
from mindshare.models.records import CanonicalPost
from mindshare.services.normalizer import normalize_posts
from mindshare.services.rolling_store import (
    Poll,
    Push,
    RollingStore,
    dedupe_keep_first,
    reduce_collection,
)

_T0 = datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC)
_T1 = datetime(2025, 6, 1, 12, 5, 0, tzinfo=UTC)


def _post(post_id: str, likes: float = 0) -> CanonicalPost:
    return CanonicalPost(id=post_id, platform="Social", text="", likes=likes)


def _ids(records: tuple[CanonicalPost, ...]) -> list[str]:
    return [r.id for r in records]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------


class TestReducer:
    def test_dedupe_keeps_first(self) -> None:
        result = dedupe_keep_first([_post("a", 1), _post("b"), _post("a", 2)])
        assert _ids(tuple(result)) == ["a", "b"]
        assert result[0].likes == 1

    def test_poll_replaces_collection(self) -> None:
        current = (_post("old"),)
        result = reduce_collection(current, Poll((_post("x"), _post("y"))), cap=10)
        assert _ids(result) == ["x", "y"]

    def test_poll_trims_to_cap(self) -> None:
        batch = tuple(_post(str(i)) for i in range(5))
        assert _ids(reduce_collection((), Poll(batch), cap=2)) == ["0", "1"]

    def test_push_prepends(self) -> None:
        current = (_post("b"), _post("a"))
        result = reduce_collection(current, Push((_post("c"),)), cap=10)
        assert _ids(result) == ["c", "b", "a"]

    def test_push_newest_copy_wins(self) -> None:
        current = (_post("a", 1),)
        result = reduce_collection(current, Push((_post("a", 2),)), cap=10)
        assert len(result) == 1
        assert result[0].likes == 2

    def test_unknown_event_rejected(self) -> None:
        with pytest.raises(TypeError):
            reduce_collection((), object(), cap=1)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Store behaviour
# ---------------------------------------------------------------------------


class TestRollingStore:
    def test_cap_three_keeps_newest_pushes(self) -> None:
        store: RollingStore[CanonicalPost] = RollingStore(3)
        for i in range(1, 6):
            store.merge(Push((_post(str(i)),)))
        assert _ids(store.snapshot()) == ["5", "4", "3"]

    def test_push_batch_with_duplicate_id(self) -> None:
        batch = normalize_posts([
            {"id": "1", "likes": 10, "shares": 5, "comments": 2, "tags": ["#bonk"], "sentiment": 0.5},
            {"id": "1", "likes": 999, "tags": ["#bonk"]},
            {"id": "2", "likes": 0, "tags": ["#sol"], "sentiment": -0.4},
        ])
        store: RollingStore[CanonicalPost] = RollingStore(500)
        store.merge(Push(tuple(batch)))

        records = store.snapshot()
        assert len(records) == 2
        assert records[0].id == "1"
        assert records[0].engagement == 17

    def test_ids_unique_and_bounded_after_many_merges(self) -> None:
        store: RollingStore[CanonicalPost] = RollingStore(7)
        for i in range(30):
            batch = tuple(_post(str((i * 3 + j) % 11)) for j in range(4))
            store.merge(Push(batch) if i % 3 else Poll(batch))
            ids = _ids(store.snapshot())
            assert len(ids) == len(set(ids))
            assert len(ids) <= 7

    def test_len(self) -> None:
        store: RollingStore[CanonicalPost] = RollingStore(5)
        store.merge(Poll((_post("a"), _post("b"))))
        assert len(store) == 2


class TestLastUpdated:
    def test_initially_none(self) -> None:
        assert RollingStore(5).last_updated is None

    def test_advances_on_successful_merge(self) -> None:
        store: RollingStore[CanonicalPost] = RollingStore(5)
        store.merge(Poll((_post("a"),), fetched_at=_T0))
        assert store.last_updated == _T0
        store.merge(Push((_post("b"),), received_at=_T1))
        assert store.last_updated == _T1

    def test_failed_fetch_empties_without_advancing(self) -> None:
        store: RollingStore[CanonicalPost] = RollingStore(5)
        store.merge(Poll((_post("a"),), fetched_at=_T0))
        store.merge(Poll((), fetched_at=None))
        assert store.snapshot() == ()
        assert store.last_updated == _T0

    def test_state_is_a_consistent_pair(self) -> None:
        store: RollingStore[CanonicalPost] = RollingStore(5)
        store.merge(Poll((_post("a"),), fetched_at=_T0))
        state = store.state()
        assert _ids(state.records) == ["a"]
        assert state.last_updated == _T0


class TestConfig:
    @pytest.mark.parametrize("cap", [0, -1, 2.5, True, "10"])
    def test_invalid_cap_raises(self, cap: object) -> None:
        with pytest.raises(ConfigError):
            RollingStore(cap)  # type: ignore[arg-type]

    def test_config_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            RollingStore(0)
