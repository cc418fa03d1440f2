"""Record store adapters.

Provides:
- RecordStore / WritableRecordStore: the read-only and read-write contracts
- CsvRecordStore: flat-file tables (read-only)
- SheetsRecordStore: Google Sheets tables (read-write)
- open_store: pick one from StoreSettings
"""

from schedulecheck.store.base import RecordStore, Row, WritableRecordStore
from schedulecheck.store.csv_store import CsvRecordStore
from schedulecheck.store.factory import open_store
from schedulecheck.store.sheets_store import SheetsRecordStore

__all__ = [
    "CsvRecordStore",
    "RecordStore",
    "Row",
    "SheetsRecordStore",
    "WritableRecordStore",
    "open_store",
]
