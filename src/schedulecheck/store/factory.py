"""Select a record store from configuration."""

from __future__ import annotations

import structlog

from schedulecheck.config.app_config import StoreSettings
from schedulecheck.store.base import RecordStore
from schedulecheck.store.csv_store import CsvRecordStore
from schedulecheck.store.sheets_store import SheetsRecordStore

logger = structlog.get_logger(__name__)


def open_store(settings: StoreSettings) -> RecordStore:
    """Open a fresh store for one request.

    Raises:
        ConfigurationError: If the backing spreadsheet cannot be resolved.
    """
    if settings.backend == "sheets":
        logger.debug("opening_sheets_store", spreadsheet_id=settings.spreadsheet_id)
        return SheetsRecordStore(
            spreadsheet_id=settings.spreadsheet_id or "",
            service_account_info=settings.service_account_info(),
            credentials_file=settings.credentials_file,
            retry_attempts=settings.retry_attempts,
        )

    logger.debug("opening_csv_store", csv_dir=settings.csv_dir)
    return CsvRecordStore(settings.csv_dir)
