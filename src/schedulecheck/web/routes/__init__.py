"""Route handlers for the Web API."""

from schedulecheck.web.routes.health import router as health_router
from schedulecheck.web.routes.schedule import router as schedule_router

__all__ = [
    "health_router",
    "schedule_router",
]
