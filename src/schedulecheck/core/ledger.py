"""Login history ledger.

Responsibilities:
- Find-or-create the ledger row for an exam number (full scan)
- Apply one login: loginCount + 1, firstLogin if absent, lastLogin always
- Produce the stored timestamp string (fixed UTC offset, second precision)

The store offers no transactions or locking, so each login is a
read-modify-write across separate calls. Within one process, writes for the
same exam number are serialized; across processes an increment can still be
lost when two logins interleave.
"""

from __future__ import annotations

import threading
import weakref
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import ContextManager, Literal

import structlog

from schedulecheck.core.records import LoginHistoryRecord, normalize_exam_number
from schedulecheck.errors import LedgerWriteError
from schedulecheck.store.base import RecordStore, WritableRecordStore

logger = structlog.get_logger(__name__)

MissingPolicy = Literal["strict", "lazy_create"]
WriteMode = Literal["row", "cells"]
LedgerStatus = Literal["updated", "created", "skipped"]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_UTC_OFFSET_HOURS = 9


def login_timestamp(
    moment: datetime | None = None,
    utc_offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> str:
    """Format a login instant as stored in the ledger.

    Naive datetimes are taken to be UTC. The offset is implied by convention
    and not written into the string.
    """
    if moment is None:
        moment = datetime.now(timezone.utc)
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)

    local = moment.astimezone(timezone(timedelta(hours=utc_offset_hours)))
    return local.strftime(TIMESTAMP_FORMAT)


@dataclass
class LedgerResult:
    """Outcome of recording one login."""

    status: LedgerStatus
    reason: str | None = None
    record: LoginHistoryRecord | None = None


class KeyedLocks:
    """One lock per key, created on first use.

    Entries are weak: a key's lock is dropped once no caller holds it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every ledger in the process; ledgers are built per request
_ROW_LOCKS = KeyedLocks()


def lookup_history(
    store: RecordStore, table: str, exam_number: str
) -> LoginHistoryRecord | None:
    """Find the ledger record for an exam number, or None."""
    wanted = normalize_exam_number(exam_number)
    row = store.find_row(
        table, lambda fields: normalize_exam_number(fields.get("examNumber")) == wanted
    )
    if row is None:
        return None
    return LoginHistoryRecord.from_row(row)


class LoginLedger:
    """Records successful logins into the ledger table."""

    def __init__(
        self,
        store: WritableRecordStore,
        table: str,
        policy: MissingPolicy = "strict",
        write_mode: WriteMode = "row",
        serialize_writes: bool = True,
    ):
        self.store = store
        self.table = table
        self.policy = policy
        self.write_mode = write_mode
        self.serialize_writes = serialize_writes

    def _lock(self, exam_number: str) -> ContextManager[object]:
        if not self.serialize_writes:
            return nullcontext()
        return _ROW_LOCKS.lock_for(f"{self.table}:{exam_number}")

    def record_login(self, exam_number: str, now: str) -> LedgerResult:
        """Apply one successful login to the ledger.

        Args:
            exam_number: Exam number of the authenticated student
            now: Request timestamp from login_timestamp()

        Returns:
            LedgerResult with status updated, created, or skipped.

        Raises:
            LedgerWriteError: If reading or writing the ledger fails.
        """
        key = normalize_exam_number(exam_number)
        if not key:
            raise LedgerWriteError(key, "empty exam number")

        try:
            with self._lock(key):
                return self._apply(key, now)
        except LedgerWriteError:
            raise
        except Exception as e:
            raise LedgerWriteError(key, f"{type(e).__name__}: {e}") from e

    def _apply(self, exam_number: str, now: str) -> LedgerResult:
        current = lookup_history(self.store, self.table, exam_number)

        if current is None:
            return self._handle_missing(exam_number, now)

        updates: dict[str, object] = {
            "loginCount": current.login_count + 1,
            "lastLogin": now,
        }
        if current.first_login is None:
            updates["firstLogin"] = now

        write = self.store.update_cells if self.write_mode == "cells" else self.store.update_row
        write(self.table, current.row, updates)

        record = LoginHistoryRecord(
            exam_number=current.exam_number,
            login_count=current.login_count + 1,
            first_login=current.first_login or now,
            last_login=now,
            row=current.row,
        )
        logger.info(
            "ledger_row_updated",
            exam_number=exam_number,
            table=self.table,
            login_count=record.login_count,
        )
        return LedgerResult(status="updated", record=record)

    def _handle_missing(self, exam_number: str, now: str) -> LedgerResult:
        if self.policy == "lazy_create":
            record = LoginHistoryRecord(
                exam_number=exam_number,
                login_count=1,
                first_login=now,
                last_login=now,
            )
            self.store.append_row(self.table, record.to_fields())
            logger.info("ledger_row_created", exam_number=exam_number, table=self.table)
            return LedgerResult(status="created", record=record)

        logger.warning("ledger_row_missing", exam_number=exam_number, table=self.table)
        return LedgerResult(status="skipped", reason="not_provisioned")
