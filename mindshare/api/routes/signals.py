"""Read endpoints over the signal engine, plus visibility and refresh controls.

Every GET is a pure derivation from the engine's current rolling stores;
none of them trigger a fetch.
"""

import logging

from fastapi import APIRouter, Depends, Query

from mindshare.api.dependencies import get_engine
from mindshare.core.logging import EVENT_MANUAL_REFRESH, log_event
from mindshare.models.api import SnapshotResponse, VisibilityRequest, VisibilityResponse
from mindshare.models.signals import (
    LatestPost,
    LeaderboardRow,
    MindshareSnapshot,
    NarrativeAggregate,
    NarrativeSummary,
    SentimentLabel,
    TrendingTopic,
)
from mindshare.services.engine import SignalEngine
from mindshare.services.highlights import LeaderboardSort

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


def _snapshot_response(engine: SignalEngine) -> SnapshotResponse:
    snapshot = engine.get_snapshot()
    return SnapshotResponse(
        source=engine.source_name,
        state=engine.state,
        posts=len(snapshot.posts),
        influencers=len(snapshot.influencers),
        last_updated=snapshot.last_updated,
    )


@router.get("/snapshot", response_model=SnapshotResponse)
def get_snapshot(engine: SignalEngine = Depends(get_engine)) -> SnapshotResponse:
    """Collection sizes and the time of the last successful merge."""
    return _snapshot_response(engine)


@router.get("/mindshare", response_model=MindshareSnapshot)
def get_mindshare(engine: SignalEngine = Depends(get_engine)) -> MindshareSnapshot:
    return engine.get_mindshare_snapshot()


@router.get("/narratives", response_model=list[NarrativeAggregate])
def get_narratives(
    top_n: int | None = Query(default=None, ge=1, le=100),
    sentiment: SentimentLabel | None = None,
    engine: SignalEngine = Depends(get_engine),
) -> list[NarrativeAggregate]:
    """Ranked narratives, optionally only those carrying one sentiment label."""
    return engine.get_narratives(top_n, sentiment)


@router.get("/narratives/summary", response_model=NarrativeSummary)
def get_narrative_summary(engine: SignalEngine = Depends(get_engine)) -> NarrativeSummary:
    return engine.get_narrative_summary()


@router.get("/trending", response_model=list[TrendingTopic])
def get_trending(
    top_n: int | None = Query(default=None, ge=1, le=100),
    engine: SignalEngine = Depends(get_engine),
) -> list[TrendingTopic]:
    return engine.get_trending_topics(top_n)


@router.get("/posts/latest", response_model=list[LatestPost])
def get_latest_posts(
    limit: int = Query(default=12, ge=1, le=500),
    platform: str | None = None,
    engine: SignalEngine = Depends(get_engine),
) -> list[LatestPost]:
    return engine.get_latest_posts(limit, platform)


@router.get("/posts/influencers", response_model=list[LatestPost])
def get_influencer_posts(
    limit: int = Query(default=12, ge=1, le=500),
    engine: SignalEngine = Depends(get_engine),
) -> list[LatestPost]:
    """Newest posts authored by a creator in the influencer collection."""
    return engine.get_influencer_posts(limit)


@router.get("/influencers/leaderboard", response_model=list[LeaderboardRow])
def get_leaderboard(
    q: str = "",
    sort: LeaderboardSort = LeaderboardSort.impact,
    limit: int = Query(default=20, ge=1, le=500),
    engine: SignalEngine = Depends(get_engine),
) -> list[LeaderboardRow]:
    return engine.get_influencer_leaderboard(q, sort, limit)


@router.post("/visibility", response_model=VisibilityResponse)
async def set_visibility(
    body: VisibilityRequest,
    engine: SignalEngine = Depends(get_engine),
) -> VisibilityResponse:
    """Suspend polling while no client is watching; resume with a refresh."""
    engine.set_visibility(body.visible)
    return VisibilityResponse(state=engine.state)


@router.post("/refresh", response_model=SnapshotResponse)
async def refresh(engine: SignalEngine = Depends(get_engine)) -> SnapshotResponse:
    """Fetch every source now and return the resulting snapshot."""
    await engine.refresh()
    log_event(logger, "info", EVENT_MANUAL_REFRESH, source=engine.source_name)
    return _snapshot_response(engine)
