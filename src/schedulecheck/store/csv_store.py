"""Flat-file record store.

Each logical table is a CSV file named <table>.csv under a base directory.
The whole file is loaded on every call. Read-only: login history is not
tracked when this store is in use.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path

import structlog

from schedulecheck.errors import ConfigurationError, StoreError
from schedulecheck.store.base import RecordStore, Row

logger = structlog.get_logger(__name__)


def parse_csv(text: str, table: str = "") -> list[Row]:
    """Parse header-delimited CSV text into rows.

    Header names are trimmed; cell values are kept as-is. Blank lines are
    skipped and short rows are padded with "".
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.reader(io.StringIO(text))
    try:
        header = [h.strip() for h in next(reader)]
    except StopIteration:
        return []

    rows: list[Row] = []
    for values in reader:
        if not values or all(not v.strip() for v in values):
            continue
        padded = values + [""] * (len(header) - len(values))
        fields = {name: padded[i] for i, name in enumerate(header) if name}
        rows.append(Row(table=table, index=len(rows), fields=fields))
    return rows


class CsvRecordStore(RecordStore):
    """Read-only store backed by CSV files."""

    def __init__(self, base_dir: Path | str, encoding: str = "utf-8-sig"):
        self.base_dir = Path(base_dir)
        self.encoding = encoding

    def _table_path(self, table: str) -> Path:
        return self.base_dir / f"{table}.csv"

    def resolve_table(self, table: str) -> None:
        path = self._table_path(table)
        if not path.is_file():
            logger.error("csv_table_not_found", table=table, path=str(path))
            raise ConfigurationError(f"Data file not found for table '{table}': {path}")

    def list_records(self, table: str) -> list[Row]:
        self.resolve_table(table)
        path = self._table_path(table)
        try:
            # newline="" lets the csv module handle \r\n inside the file
            with open(path, encoding=self.encoding, newline="") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(f"Cannot read table '{table}': {e}") from e

        rows = parse_csv(text, table=table)
        logger.debug("csv_table_loaded", table=table, rows=len(rows))
        return rows
