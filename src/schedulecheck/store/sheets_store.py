"""Google Sheets record store.

Each logical table is a worksheet whose first row is the header. The store
authenticates once when constructed and caches worksheet handles and headers
only for its own lifetime (one request).

All network calls go through _call(), which applies the retry policy:
transient API errors (429/5xx) are retried with exponential backoff.
Appends are not retried since a repeated append would duplicate the row.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Mapping

import gspread
import structlog
from gspread.exceptions import APIError, SpreadsheetNotFound, WorksheetNotFound
from gspread.utils import rowcol_to_a1
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from schedulecheck.errors import ConfigurationError, StoreError
from schedulecheck.store.base import Row, WritableRecordStore

logger = structlog.get_logger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Values are written literally so timestamps are not reinterpreted as dates
VALUE_INPUT_OPTION = "RAW"

# Sheet row 1 holds the header; data row index 0 lives on sheet row 2
HEADER_ROWS = 1


def _status_code(error: APIError) -> int | None:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, APIError) and _status_code(error) in TRANSIENT_STATUS_CODES


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "sheets_call_retry",
        attempt=retry_state.attempt_number,
        error=str(error),
    )


def authorize(
    service_account_info: Mapping[str, str] | None = None,
    credentials_file: str | Path | None = None,
) -> gspread.Client:
    """Authenticate with service-account credentials."""
    if service_account_info:
        return gspread.service_account_from_dict(dict(service_account_info))
    if credentials_file:
        return gspread.service_account(filename=str(credentials_file))
    raise ConfigurationError("No service account credentials configured")


class SheetsRecordStore(WritableRecordStore):
    """Read-write store backed by a Google spreadsheet."""

    def __init__(
        self,
        spreadsheet_id: str,
        client: Any | None = None,
        service_account_info: Mapping[str, str] | None = None,
        credentials_file: str | Path | None = None,
        retry_attempts: int = 3,
        retry_wait_seconds: float = 0.5,
    ):
        """Authenticate and open the spreadsheet.

        Args:
            spreadsheet_id: Spreadsheet key from its URL
            client: Pre-built gspread client (authorize() is used otherwise)
            service_account_info: Inline service-account credentials
            credentials_file: Service-account JSON file
            retry_attempts: Total attempts for idempotent calls
            retry_wait_seconds: Base backoff between attempts

        Raises:
            ConfigurationError: If the spreadsheet cannot be found.
        """
        self.spreadsheet_id = spreadsheet_id
        self.retry_attempts = retry_attempts
        self.retry_wait_seconds = retry_wait_seconds
        self._worksheets: dict[str, Any] = {}
        self._headers: dict[str, list[str]] = {}

        if client is None:
            client = authorize(service_account_info, credentials_file)
        self._client = client

        try:
            self._spreadsheet = self._call(self._client.open_by_key, spreadsheet_id)
        except SpreadsheetNotFound as e:
            logger.error("spreadsheet_not_found", spreadsheet_id=spreadsheet_id)
            raise ConfigurationError(f"Spreadsheet '{spreadsheet_id}' not found") from e

    # -------------------------------------------------------------------------
    # I/O plumbing
    # -------------------------------------------------------------------------

    def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run an idempotent network call under the retry policy."""
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=4),
            retry=retry_if_exception(_is_transient),
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            return retrying(fn, *args, **kwargs)
        except APIError as e:
            raise StoreError(f"Sheets API call failed: {e}") from e

    def _worksheet(self, table: str) -> Any:
        if table not in self._worksheets:
            try:
                self._worksheets[table] = self._call(self._spreadsheet.worksheet, table)
            except WorksheetNotFound as e:
                logger.error("worksheet_not_found", table=table)
                raise ConfigurationError(f"Sheet '{table}' not found") from e
        return self._worksheets[table]

    def _header(self, table: str) -> list[str]:
        if table not in self._headers:
            ws = self._worksheet(table)
            self._headers[table] = [h.strip() for h in self._call(ws.row_values, 1)]
        return self._headers[table]

    def _column(self, table: str, field_name: str) -> int:
        """1-based column of a header field."""
        header = self._header(table)
        try:
            return header.index(field_name) + 1
        except ValueError:
            raise StoreError(f"Column '{field_name}' not found in sheet '{table}'") from None

    @staticmethod
    def _sheet_row(row: Row) -> int:
        return row.index + HEADER_ROWS + 1

    # -------------------------------------------------------------------------
    # RecordStore
    # -------------------------------------------------------------------------

    def resolve_table(self, table: str) -> None:
        self._worksheet(table)

    def list_records(self, table: str) -> list[Row]:
        ws = self._worksheet(table)
        values = self._call(ws.get_all_values)
        if not values:
            self._headers[table] = []
            return []

        header = [h.strip() for h in values[0]]
        self._headers[table] = header

        rows: list[Row] = []
        for index, raw in enumerate(values[1:]):
            if not any(str(v).strip() for v in raw):
                continue
            padded = list(raw) + [""] * (len(header) - len(raw))
            fields = {name: padded[i] for i, name in enumerate(header) if name}
            rows.append(Row(table=table, index=index, fields=fields))

        logger.debug("sheet_loaded", table=table, rows=len(rows))
        return rows

    # -------------------------------------------------------------------------
    # WritableRecordStore
    # -------------------------------------------------------------------------

    def update_row(self, table: str, row: Row, updates: Mapping[str, Any]) -> bool:
        ws = self._worksheet(table)
        sheet_row = self._sheet_row(row)
        data = [
            {
                "range": rowcol_to_a1(sheet_row, self._column(table, name)),
                "values": [[value]],
            }
            for name, value in updates.items()
        ]
        if not data:
            return True

        self._call(ws.batch_update, data, value_input_option=VALUE_INPUT_OPTION)
        row.fields.update(updates)
        logger.debug("sheet_row_updated", table=table, row=sheet_row, fields=list(updates))
        return True

    def update_cells(self, table: str, row: Row, updates: Mapping[str, Any]) -> bool:
        ws = self._worksheet(table)
        sheet_row = self._sheet_row(row)
        columns = {name: self._column(table, name) for name in updates}
        if not columns:
            return True

        width = len(self._header(table))
        cell_range = f"{rowcol_to_a1(sheet_row, 1)}:{rowcol_to_a1(sheet_row, width)}"
        cells = self._call(ws.range, cell_range)

        by_column = {cell.col: cell for cell in cells}
        changed = []
        for name, col in columns.items():
            cell = by_column[col]
            cell.value = updates[name]
            changed.append(cell)

        self._call(ws.update_cells, changed, value_input_option=VALUE_INPUT_OPTION)
        row.fields.update(updates)
        logger.debug("sheet_cells_updated", table=table, range=cell_range, cells=len(changed))
        return True

    def append_row(self, table: str, fields: Mapping[str, Any]) -> bool:
        ws = self._worksheet(table)
        header = self._header(table)

        unknown = [name for name in fields if name not in header]
        if unknown:
            raise StoreError(f"Columns {unknown} not found in sheet '{table}'")

        values = [fields.get(name, "") for name in header]
        try:
            ws.append_row(values, value_input_option=VALUE_INPUT_OPTION)
        except APIError as e:
            raise StoreError(f"Append to sheet '{table}' failed: {e}") from e

        logger.debug("sheet_row_appended", table=table)
        return True
