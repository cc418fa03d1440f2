"""Check-schedule request handler.

Transport independent: takes an HTTP method and raw body, returns a status
code and JSON body. Outcomes:

    METHOD_NOT_ALLOWED  405  method is not POST (nothing else runs)
    CONFIG_ERROR        500  no valid config, or a table does not resolve
    BAD_REQUEST         400  examNumber or password missing/empty
    AUTH_FAILURE        401  no roster match (ledger untouched)
    AUTH_SUCCESS        200  match; ledger updated best-effort first
    INTERNAL_ERROR      500  anything unexpected

Ledger failures never change the outcome.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

import structlog
from pydantic import ValidationError as PydanticValidationError

from schedulecheck.config.app_config import AppConfig, MessageSettings, StoreSettings
from schedulecheck.core.authenticator import authenticate, load_roster
from schedulecheck.core.ledger import LedgerResult, LoginLedger, login_timestamp
from schedulecheck.core.records import StudentProfile, StudentRecord, normalize_exam_number
from schedulecheck.errors import ConfigurationError, LedgerWriteError, ValidationError
from schedulecheck.store.base import RecordStore, WritableRecordStore
from schedulecheck.store.factory import open_store
from schedulecheck.web.schemas import (
    CheckScheduleRequest,
    CheckScheduleResponse,
    ErrorResponse,
    MethodNotAllowedResponse,
    ScheduleData,
)

logger = structlog.get_logger(__name__)

ALLOWED_METHOD = "POST"

StoreFactory = Callable[[StoreSettings], RecordStore]


class Outcome(str, Enum):
    """Terminal states of a check-schedule request."""

    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    CONFIG_ERROR = "CONFIG_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    AUTH_SUCCESS = "AUTH_SUCCESS"
    AUTH_FAILURE = "AUTH_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class HandlerResult:
    """Response produced for one request."""

    outcome: Outcome
    status_code: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    ledger: LedgerResult | None = None


@dataclass
class CheckRequest:
    exam_number: str
    password: str = field(repr=False)


def parse_request(body: bytes | str) -> CheckRequest:
    """Parse and validate a request body.

    Raises:
        ValidationError: If the body is not a JSON object or either field is
            missing or empty.
    """
    required = ["examNumber", "password"]
    try:
        payload = json.loads(body or b"null")
    except (ValueError, UnicodeDecodeError):
        raise ValidationError(required) from None
    if not isinstance(payload, dict):
        raise ValidationError(required)

    try:
        request = CheckScheduleRequest.model_validate(payload)
    except PydanticValidationError:
        raise ValidationError(required) from None

    missing = []
    exam_number = normalize_exam_number(request.exam_number)
    if not exam_number:
        missing.append("examNumber")
    if not request.password:
        missing.append("password")
    if missing:
        raise ValidationError(missing)

    return CheckRequest(exam_number=exam_number, password=request.password or "")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CheckScheduleHandler:
    """Orchestrates parse, authenticate and ledger update for one request."""

    def __init__(
        self,
        config: AppConfig | None,
        store_factory: StoreFactory = open_store,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize handler.

        Args:
            config: Validated configuration, or None if loading it failed
            store_factory: Opens a fresh record store per request
            clock: Source of the request instant (defaults to UTC now)
        """
        self.config = config
        self.store_factory = store_factory
        self.clock = clock or _utc_now

    # -------------------------------------------------------------------------
    # Response shaping
    # -------------------------------------------------------------------------

    def _error(self, outcome: Outcome, status_code: int, message: str) -> HandlerResult:
        body = ErrorResponse(message=message).model_dump()
        return HandlerResult(outcome=outcome, status_code=status_code, body=body)

    def _server_error(self, outcome: Outcome) -> HandlerResult:
        messages = self.config.messages if self.config else MessageSettings()
        return self._error(outcome, 500, messages.server_error)

    @staticmethod
    def _success(profile: StudentProfile, ledger: LedgerResult | None) -> HandlerResult:
        data = ScheduleData(**profile.to_dict())
        body = CheckScheduleResponse(data=data).model_dump(by_alias=True)
        return HandlerResult(
            outcome=Outcome.AUTH_SUCCESS,
            status_code=200,
            body=body,
            ledger=ledger,
        )

    # -------------------------------------------------------------------------
    # Flow
    # -------------------------------------------------------------------------

    async def handle(self, method: str, body: bytes | str = b"") -> HandlerResult:
        """Handle one request end to end. Never raises."""
        if method.upper() != ALLOWED_METHOD:
            return HandlerResult(
                outcome=Outcome.METHOD_NOT_ALLOWED,
                status_code=405,
                body=MethodNotAllowedResponse().model_dump(),
                headers={"Allow": ALLOWED_METHOD},
            )

        config = self.config
        if config is None:
            logger.error("config_unavailable")
            return self._server_error(Outcome.CONFIG_ERROR)

        try:
            return await self._check(config, body)
        except Exception as e:
            # Logged without traceback: frame locals hold the raw body
            logger.error("check_schedule_failed", error_type=type(e).__name__)
            return self._server_error(Outcome.INTERNAL_ERROR)

    async def _check(self, config: AppConfig, body: bytes | str) -> HandlerResult:

        try:
            request = parse_request(body)
        except ValidationError as e:
            logger.info("request_rejected", missing=e.missing)
            return self._error(Outcome.BAD_REQUEST, 400, config.messages.missing_fields)

        # One instant per request, used for both ledger timestamps
        now = login_timestamp(self.clock(), config.ledger.utc_offset_hours)

        try:
            store, roster = await asyncio.to_thread(self._open_roster, config.store)
        except ConfigurationError as e:
            logger.error("store_configuration_error", error=str(e))
            return self._server_error(Outcome.CONFIG_ERROR)

        profile = authenticate(roster, request.exam_number, request.password)
        if profile is None:
            logger.info("authentication_failed", exam_number=request.exam_number)
            return self._error(
                Outcome.AUTH_FAILURE, 401, config.messages.invalid_credentials
            )

        logger.info("authentication_succeeded", exam_number=profile.exam_number)
        ledger_result = await self.record_login(config, store, profile.exam_number, now)
        return self._success(profile, ledger_result)

    def _open_roster(self, settings: StoreSettings) -> tuple[RecordStore, list[StudentRecord]]:
        store = self.store_factory(settings)
        store.resolve_table(settings.roster_table)
        return store, load_roster(store, settings.roster_table)

    async def record_login(
        self, config: AppConfig, store: RecordStore, exam_number: str, now: str
    ) -> LedgerResult:
        """Update the ledger without letting it affect the response.

        Bounded by ledger.timeout_seconds. Failures are logged and reported as
        a skipped result.
        """
        settings = config.ledger

        if not settings.enabled:
            logger.debug("ledger_disabled", exam_number=exam_number)
            return LedgerResult(status="skipped", reason="disabled")

        if not isinstance(store, WritableRecordStore):
            logger.debug("ledger_unsupported", backend=config.store.backend)
            return LedgerResult(status="skipped", reason="read_only_store")

        ledger = LoginLedger(
            store,
            config.store.ledger_table,
            policy=settings.missing_policy,  # type: ignore[arg-type]
            write_mode=settings.write_mode,  # type: ignore[arg-type]
            serialize_writes=settings.serialize_writes,
        )

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(ledger.record_login, exam_number, now),
                timeout=settings.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "ledger_write_timeout",
                exam_number=exam_number,
                timeout_seconds=settings.timeout_seconds,
            )
            return LedgerResult(status="skipped", reason="timeout")
        except LedgerWriteError as e:
            logger.warning(
                "ledger_write_failed",
                exam_number=exam_number,
                error_type=type(e).__name__,
                error=str(e),
            )
            return LedgerResult(status="skipped", reason="error")
