"""Credential matching against the roster.

Exam numbers are normalized on both sides (trimmed, coerced to string).
Passwords are compared exactly after string coercion and are never trimmed.
"""

from __future__ import annotations

import hmac
from typing import Any, Iterable

import structlog

from schedulecheck.core.records import (
    StudentProfile,
    StudentRecord,
    coerce_str,
    normalize_exam_number,
)
from schedulecheck.store.base import RecordStore

logger = structlog.get_logger(__name__)


def load_roster(store: RecordStore, table: str) -> list[StudentRecord]:
    """Read and parse every roster row, in natural order."""
    rows = store.list_records(table)
    roster = [StudentRecord.from_fields(row.fields) for row in rows]
    logger.debug("roster_loaded", table=table, records=len(roster))
    return roster


def _password_matches(stored: str, submitted: str) -> bool:
    return hmac.compare_digest(stored.encode("utf-8"), submitted.encode("utf-8"))


def authenticate(
    roster: Iterable[StudentRecord],
    exam_number: Any,
    password: Any,
) -> StudentProfile | None:
    """Find the roster record matching the submitted credentials.

    Args:
        roster: Records in natural order; the first match wins
        exam_number: Submitted exam number (normalized before comparing)
        password: Submitted password (exact match)

    Returns:
        The non-secret profile of the matching record, or None.
    """
    wanted = normalize_exam_number(exam_number)
    secret = coerce_str(password)
    if not wanted:
        return None

    for record in roster:
        if normalize_exam_number(record.exam_number) != wanted:
            continue
        if _password_matches(record.password, secret):
            return record.to_profile()

    return None
