"""Deduplicating, bounded, most-recent-first record store.

Ingestion reaches the store as one of two events, consumed by a single pure
reducer (:func:`reduce_collection`):

- :class:`Poll` — full replacement: the batch, deduped against itself.
- :class:`Push` — incremental: the batch is prepended ahead of the existing
  records, then deduped keeping the first (newest) occurrence of each id.

Both results are trimmed to the store's cap.  :meth:`RollingStore.merge`
computes the complete next state before swapping it in with a single
assignment, so a reader never observes a half-applied merge.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, Protocol, TypeVar

from mindshare.core.errors import ConfigError
from mindshare.core.logging import EVENT_BATCH_MERGED, log_event

logger = logging.getLogger(__name__)


class Identified(Protocol):
    @property
    def id(self) -> str: ...


R = TypeVar("R", bound=Identified)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Poll(Generic[R]):
    """Full-replacement batch from a poll tick.

    ``fetched_at`` is ``None`` when the batch stands in for a failed fetch;
    such a merge does not advance the store's ``last_updated``.
    """

    batch: tuple[R, ...]
    fetched_at: datetime | None = field(default_factory=_utcnow)


@dataclass(frozen=True)
class Push(Generic[R]):
    """Incremental batch delivered by a push channel."""

    batch: tuple[R, ...]
    received_at: datetime | None = field(default_factory=_utcnow)


IngestionEvent = Poll[R] | Push[R]


def dedupe_keep_first(records: Iterable[R]) -> list[R]:
    """Drop every record whose id was already seen earlier in *records*."""
    seen: set[str] = set()
    unique: list[R] = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def reduce_collection(
    current: tuple[R, ...],
    event: IngestionEvent[R],
    cap: int,
) -> tuple[R, ...]:
    """Return the collection that results from applying *event* to *current*."""
    if isinstance(event, Poll):
        merged = dedupe_keep_first(event.batch)
    elif isinstance(event, Push):
        merged = dedupe_keep_first((*event.batch, *current))
    else:
        raise TypeError(f"unsupported ingestion event: {type(event).__name__}")
    return tuple(merged[:cap])


def _event_timestamp(event: IngestionEvent[R]) -> datetime | None:
    if isinstance(event, Poll):
        return event.fetched_at
    return event.received_at


@dataclass(frozen=True)
class StoreState(Generic[R]):
    """Immutable pairing of records and their freshness."""

    records: tuple[R, ...] = ()
    last_updated: datetime | None = None


class RollingStore(Generic[R]):
    """Bounded, deduplicated collection with a single point of mutation."""

    def __init__(self, cap: int, *, name: str = "records") -> None:
        if not isinstance(cap, int) or isinstance(cap, bool) or cap <= 0:
            raise ConfigError(f"rolling cap must be a positive integer, got {cap!r}")
        self._cap = cap
        self._name = name
        self._state: StoreState[R] = StoreState()

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def last_updated(self) -> datetime | None:
        return self._state.last_updated

    def state(self) -> StoreState[R]:
        """Return records and ``last_updated`` as one consistent pair."""
        return self._state

    def snapshot(self) -> tuple[R, ...]:
        """Return the current ordered collection (read-only)."""
        return self._state.records

    def merge(self, event: IngestionEvent[R]) -> tuple[R, ...]:
        """Apply *event* and return the new collection."""
        current = self._state
        records = reduce_collection(current.records, event, self._cap)
        stamp = _event_timestamp(event) or current.last_updated
        self._state = StoreState(records=records, last_updated=stamp)

        log_event(
            logger, "debug", EVENT_BATCH_MERGED,
            store=self._name,
            strategy=type(event).__name__.lower(),
            incoming=len(event.batch),
            size=len(records),
        )
        return records

    def __len__(self) -> int:
        return len(self._state.records)
