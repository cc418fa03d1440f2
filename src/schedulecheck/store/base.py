"""Record store contract.

Two capabilities:
- RecordStore: read-only access to named tables (list, find, resolve)
- WritableRecordStore: adds row-granular and cell-granular updates and appends

Stores are opened per request and hold no state across requests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

RowPredicate = Callable[[Mapping[str, Any]], bool]


@dataclass
class Row:
    """Handle to a single data row of a table.

    index is the 0-based position among data rows (header excluded).
    """

    table: str
    index: int
    fields: dict[str, Any] = field(default_factory=dict)


class RecordStore(ABC):
    """Read-only access to header-delimited tables."""

    writable = False

    @abstractmethod
    def resolve_table(self, table: str) -> None:
        """Check that a logical table name exists.

        Raises:
            ConfigurationError: If the name does not resolve.
        """

    @abstractmethod
    def list_records(self, table: str) -> list[Row]:
        """Return every data row of a table in natural order."""

    def find_row(self, table: str, predicate: RowPredicate) -> Row | None:
        """Return the first row whose fields satisfy predicate, or None."""
        for row in self.list_records(table):
            if predicate(row.fields):
                return row
        return None


class WritableRecordStore(RecordStore):
    """Record store that can also mutate tables."""

    writable = True

    @abstractmethod
    def update_row(self, table: str, row: Row, updates: Mapping[str, Any]) -> bool:
        """Write the named fields of one row in a single call."""

    @abstractmethod
    def update_cells(self, table: str, row: Row, updates: Mapping[str, Any]) -> bool:
        """Load the row's cell range, set the named cells, save changed cells."""

    @abstractmethod
    def append_row(self, table: str, fields: Mapping[str, Any]) -> bool:
        """Append a new row, ordered by the table header."""
