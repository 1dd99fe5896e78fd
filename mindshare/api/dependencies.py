"""FastAPI dependencies."""

from fastapi import HTTPException, Request

from mindshare.services.engine import SignalEngine


def get_engine(request: Request) -> SignalEngine:
    """Return the engine owned by the running application."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Signal engine is not running")
    return engine
