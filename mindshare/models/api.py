"""Request / response bodies for the HTTP read API."""

from datetime import datetime

from pydantic import BaseModel

from mindshare.core.scheduler import SchedulerState


class SnapshotResponse(BaseModel):
    """Collection sizes and freshness of the engine's rolling stores."""

    source: str
    state: SchedulerState
    posts: int
    influencers: int
    last_updated: datetime | None = None


class VisibilityRequest(BaseModel):
    visible: bool


class VisibilityResponse(BaseModel):
    state: SchedulerState
