"""
Storage backend interface for the sheets document store.
Defines the contract every spreadsheet backend must implement.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence


class SheetHandle(Protocol):
    """
    A single worksheet / tab.

    `header_values` reflects the header as last loaded or written through
    the backend; it may be stale if another process grew the header.
    """

    title: str
    header_values: List[str]


class RowHandle(Protocol):
    """
    One data row of a sheet, aligned to the sheet's header.

    `set()` only changes the local copy; nothing reaches the remote store
    until `save()` is awaited.
    """

    @property
    def row_number(self) -> int:
        """1-based position in the sheet (the header is row 1)."""
        ...

    def get(self, column: str) -> Any:
        """Cell value for `column`, or None if the column is unknown."""
        ...

    def set(self, column: str, value: Any) -> None:
        """
        Set a cell locally.

        Columns that are not in the header are ignored: the write path never
        grows the header on update.
        """
        ...

    async def save(self) -> None:
        """Persist all local changes of this row."""
        ...

    async def delete(self) -> None:
        """Physically remove the row from the sheet."""
        ...

    def to_object(self) -> Dict[str, Any]:
        """{column: value} for every header column."""
        ...


class SpreadsheetBackend(Protocol):
    """
    Protocol defining the remote store the document store runs on.

    This allows swapping Google Sheets for the JSON-file emulation (dev/tests)
    without touching the store, cache or models.
    """

    async def load_session(self) -> None:
        """
        Establish the connection once. Idempotent after the first success.

        Raises:
            ConfigurationError: credentials / spreadsheet id missing or malformed.
        """
        ...

    async def load_sheet(self, name: str) -> Optional[SheetHandle]:
        """Resolve a sheet by title, or None if it does not exist."""
        ...

    async def create_sheet(self, name: str, header: Sequence[str]) -> SheetHandle:
        """Provision a new sheet whose row 1 is `header`."""
        ...

    async def load_header_row(self, sheet: SheetHandle) -> List[str]:
        """
        Reload row 1 into `sheet.header_values` and return it.

        Raises:
            HeaderRowMissing: row 1 is empty.
        """
        ...

    async def set_header_row(self, sheet: SheetHandle, columns: Sequence[str]) -> None:
        """Replace row 1 with `columns` (growing the grid if needed)."""
        ...

    async def get_rows(self, sheet: SheetHandle) -> List[RowHandle]:
        """Fetch every data row (row 2 onwards)."""
        ...

    async def append_row(self, sheet: SheetHandle, values: Dict[str, Any]) -> RowHandle:
        """
        Append one row. `values` is keyed by column name and laid out using
        the sheet's current header; keys without a column are dropped.
        """
        ...
