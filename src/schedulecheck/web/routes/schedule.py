"""Check-schedule endpoint."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schedulecheck.web.handler import ALLOWED_METHOD, CheckScheduleHandler

router = APIRouter(tags=["schedule"])

# Every method is routed here so that non-POST requests get the 405 body
ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route("/api/check-schedule", methods=ROUTED_METHODS)
async def check_schedule(request: Request) -> JSONResponse:
    """Authenticate by exam number and password, return the exam schedule."""
    handler: CheckScheduleHandler = request.app.state.handler

    body = await request.body() if request.method == ALLOWED_METHOD else b""
    result = await handler.handle(request.method, body)

    return JSONResponse(
        status_code=result.status_code,
        content=result.body,
        headers=result.headers or None,
    )
