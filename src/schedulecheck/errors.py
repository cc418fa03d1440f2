"""Error taxonomy shared across the store, ledger and request handler.

A failed credential match is not an error: ``authenticate`` returns ``None``.
"""

from __future__ import annotations


class ScheduleCheckError(Exception):
    """Base class for all schedule-check errors."""

    pass


class ConfigurationError(ScheduleCheckError):
    """Deployment configuration is missing, invalid, or names an unknown table."""

    pass


class ValidationError(ScheduleCheckError):
    """Request is missing required fields."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required fields: {', '.join(missing)}")


class StoreError(ScheduleCheckError):
    """Record store I/O failed (unreachable, rejected write, unknown column)."""

    pass


class LedgerWriteError(ScheduleCheckError):
    """Updating the login history failed. Never surfaces to the caller."""

    def __init__(self, exam_number: str, message: str):
        self.exam_number = exam_number
        super().__init__(f"Ledger update failed for '{exam_number}': {message}")
