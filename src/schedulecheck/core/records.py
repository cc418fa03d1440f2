"""Roster and ledger record types.

Rows coming out of a record store are plain field mappings whose values may be
strings, numbers or missing. Everything past the store boundary works with the
typed records defined here.

Header names (both tables):
- roster: examNumber, password, lastName, firstName, examDate, meetingTime, examPeriod
- ledger: examNumber, loginCount, firstLogin, lastLogin
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from schedulecheck.store.base import Row

ROSTER_FIELDS = (
    "examNumber",
    "password",
    "lastName",
    "firstName",
    "examDate",
    "meetingTime",
    "examPeriod",
)
LEDGER_FIELDS = ("examNumber", "loginCount", "firstLogin", "lastLogin")


def coerce_str(value: Any) -> str:
    """Coerce a raw cell value to string. None becomes ""."""
    if value is None:
        return ""
    return str(value)


def normalize_exam_number(value: Any) -> str:
    """Normalize an exam number for comparison.

    Tabular sources may hand back numbers (1001 or 1001.0) instead of text.
    """
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return coerce_str(value).strip()


def parse_login_count(value: Any) -> int:
    """Parse a stored login count. Anything non-numeric counts as 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        return max(int(value), 0) if value.is_integer() else 0

    text = coerce_str(value).strip()
    try:
        count = int(text)
    except ValueError:
        try:
            as_float = float(text)
        except ValueError:
            return 0
        if not as_float.is_integer():
            return 0
        count = int(as_float)
    return max(count, 0)


def _optional_timestamp(value: Any) -> str | None:
    text = coerce_str(value).strip()
    return text or None


@dataclass(frozen=True)
class StudentProfile:
    """Non-secret projection of a roster row."""

    exam_number: str
    last_name: str
    first_name: str
    exam_date: str
    meeting_time: str
    exam_period: str

    def to_dict(self) -> dict[str, str]:
        """Convert to the camelCase payload used in responses."""
        return {
            "examNumber": self.exam_number,
            "lastName": self.last_name,
            "firstName": self.first_name,
            "examDate": self.exam_date,
            "meetingTime": self.meeting_time,
            "examPeriod": self.exam_period,
        }


@dataclass(frozen=True)
class StudentRecord:
    """A roster row. Read-only for the lifetime of a request."""

    exam_number: str
    password: str = field(repr=False)
    last_name: str = ""
    first_name: str = ""
    exam_date: str = ""
    meeting_time: str = ""
    exam_period: str = ""

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> StudentRecord:
        """Parse a raw roster row.

        The exam number keeps its raw text; normalization happens at compare
        time. The password is only coerced to string, never trimmed.
        """
        return cls(
            exam_number=coerce_str(fields.get("examNumber")),
            password=coerce_str(fields.get("password")),
            last_name=coerce_str(fields.get("lastName")),
            first_name=coerce_str(fields.get("firstName")),
            exam_date=coerce_str(fields.get("examDate")),
            meeting_time=coerce_str(fields.get("meetingTime")),
            exam_period=coerce_str(fields.get("examPeriod")),
        )

    def to_profile(self) -> StudentProfile:
        return StudentProfile(
            exam_number=normalize_exam_number(self.exam_number),
            last_name=self.last_name,
            first_name=self.first_name,
            exam_date=self.exam_date,
            meeting_time=self.meeting_time,
            exam_period=self.exam_period,
        )


@dataclass
class LoginHistoryRecord:
    """A ledger row: per exam number login usage."""

    exam_number: str
    login_count: int = 0
    first_login: str | None = None
    last_login: str | None = None
    row: Row | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_row(cls, row: Row) -> LoginHistoryRecord:
        fields = row.fields
        return cls(
            exam_number=normalize_exam_number(fields.get("examNumber")),
            login_count=parse_login_count(fields.get("loginCount")),
            first_login=_optional_timestamp(fields.get("firstLogin")),
            last_login=_optional_timestamp(fields.get("lastLogin")),
            row=row,
        )

    def to_fields(self) -> dict[str, Any]:
        """Convert to ledger header fields for writing."""
        return {
            "examNumber": self.exam_number,
            "loginCount": self.login_count,
            "firstLogin": self.first_login or "",
            "lastLogin": self.last_login or "",
        }
