"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from schedulecheck import __version__
from schedulecheck.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check API health status."""
    config = request.app.state.config
    return HealthResponse(
        status="ok" if config is not None else "misconfigured",
        version=__version__,
        backend=config.store.backend if config is not None else None,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
