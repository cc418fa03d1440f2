"""Pydantic schemas for the Web API.

Wire field names are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


# =============================================================================
# CHECK-SCHEDULE SCHEMAS
# =============================================================================


class CheckScheduleRequest(BaseModel):
    """Request body for a schedule check.

    Both fields are optional here so that missing values can be answered
    with 400 instead of a schema error.
    """

    exam_number: str | None = Field(default=None, alias="examNumber")
    password: str | None = Field(default=None, repr=False)

    model_config = {
        "populate_by_name": True,
        "coerce_numbers_to_str": True,
        "extra": "ignore",
    }


class ScheduleData(BaseModel):
    """Non-secret student fields returned on success."""

    exam_number: str = Field(alias="examNumber")
    last_name: str = Field(alias="lastName")
    first_name: str = Field(alias="firstName")
    exam_date: str = Field(alias="examDate")
    meeting_time: str = Field(alias="meetingTime")
    exam_period: str = Field(alias="examPeriod")

    model_config = {"populate_by_name": True}


class CheckScheduleResponse(BaseModel):
    """200 response."""

    success: bool = True
    data: ScheduleData


class ErrorResponse(BaseModel):
    """400 / 401 / 500 response."""

    success: bool = False
    message: str


class MethodNotAllowedResponse(BaseModel):
    """405 response."""

    message: str = "Method Not Allowed"


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    backend: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
