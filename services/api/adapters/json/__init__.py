"""
JSON file storage backend for the sheets document store.
Emulates a spreadsheet in a single JSON file for local development and tests.
Not production-ready (no cross-process locking, whole file rewritten on every write).
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from core.errors import HeaderRowMissing, StoreError
from core.marshalling import interpret_user_entered

logger = logging.getLogger(__name__)


class JsonSheet:
    """One emulated worksheet."""

    def __init__(self, title: str, header_values: Optional[List[str]] = None):
        self.title = title
        self.header_values: List[str] = list(header_values or [])

    def __repr__(self) -> str:
        return f"JsonSheet({self.title!r})"


class JsonRow:
    """
    One data row of an emulated sheet.

    Addressed by position, exactly like a Google Sheets row: deleting a row
    shifts every row below it up by one.
    """

    def __init__(self, backend: "JsonBackend", sheet: JsonSheet, row_number: int, values: Sequence[Any]):
        self._backend = backend
        self._sheet = sheet
        self._row_number = row_number
        self._header = list(sheet.header_values)
        padded = list(values)[: len(self._header)]
        padded += [""] * (len(self._header) - len(padded))
        self._values: List[Any] = padded
        self._dirty: Dict[int, Any] = {}

    @property
    def row_number(self) -> int:
        return self._row_number

    def get(self, column: str) -> Any:
        if column not in self._header:
            return None
        return self._values[self._header.index(column)]

    def set(self, column: str, value: Any) -> None:
        if column not in self._header:
            return
        idx = self._header.index(column)
        self._values[idx] = value
        self._dirty[idx] = value

    async def save(self) -> None:
        if not self._dirty:
            return
        stored = {idx: interpret_user_entered(v) for idx, v in self._dirty.items()}
        await self._backend._update_cells(self._sheet.title, self._row_number, stored)
        for idx, value in stored.items():
            self._values[idx] = value
        self._dirty.clear()

    async def delete(self) -> None:
        await self._backend._delete_row(self._sheet.title, self._row_number)

    def to_object(self) -> Dict[str, Any]:
        return {col: self._values[i] for i, col in enumerate(self._header) if col}


class JsonBackend:
    """
    JSON file-based spreadsheet emulation.

    File layout:
        {"sheets": {"<name>": {"header": [...], "rows": [[...], ...]}}}

    Writes go through USER_ENTERED emulation (see `interpret_user_entered`)
    so data read back has the same shape as from Google Sheets.
    """

    def __init__(self, path: str = "data/rentbook.json"):
        """
        Initialize the JSON backend.

        Args:
            path: JSON file holding every sheet (created on first write)
        """
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._loaded = False

    def _read_file(self) -> Dict[str, Any]:
        """Read and parse the store file."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {"sheets": {}}
        except json.JSONDecodeError as e:
            raise StoreError(f"JSON store {self.path} is corrupted: {e}") from e
        data.setdefault("sheets", {})
        return data

    def _write_file(self, data: Dict[str, Any]) -> None:
        """Write the store file atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write to temporary file first
        tmp_file = self.path.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

        # Atomic rename
        tmp_file.replace(self.path)

    def _sheet_data(self, data: Dict[str, Any], name: str) -> Dict[str, Any]:
        try:
            return data["sheets"][name]
        except KeyError:
            raise StoreError(f"Sheet '{name}' does not exist in {self.path}") from None

    # ========== Session ==========

    async def load_session(self) -> None:
        if self._loaded:
            return
        async with self._lock:
            data = self._read_file()
        self._loaded = True
        logger.info("JSON store opened: %s (%d sheets)", self.path, len(data["sheets"]))

    # ========== Sheets ==========

    async def load_sheet(self, name: str) -> Optional[JsonSheet]:
        async with self._lock:
            data = self._read_file()
        sheet = data["sheets"].get(name)
        if sheet is None:
            return None
        return JsonSheet(name, sheet.get("header") or [])

    async def create_sheet(self, name: str, header: Sequence[str]) -> JsonSheet:
        async with self._lock:
            data = self._read_file()
            data["sheets"].setdefault(name, {"header": list(header), "rows": []})
            self._write_file(data)
            stored_header = data["sheets"][name]["header"]
        logger.info("Created sheet '%s' (%d columns)", name, len(stored_header))
        return JsonSheet(name, stored_header)

    async def load_header_row(self, sheet: JsonSheet) -> List[str]:
        async with self._lock:
            data = self._read_file()
        header = list(self._sheet_data(data, sheet.title).get("header") or [])
        if not any(header):
            raise HeaderRowMissing(f"Sheet '{sheet.title}' has no header row")
        sheet.header_values = header
        return header

    async def set_header_row(self, sheet: JsonSheet, columns: Sequence[str]) -> None:
        cols = list(columns)
        async with self._lock:
            data = self._read_file()
            self._sheet_data(data, sheet.title)["header"] = cols
            self._write_file(data)
        sheet.header_values = cols

    # ========== Rows ==========

    async def get_rows(self, sheet: JsonSheet) -> List[JsonRow]:
        async with self._lock:
            data = self._read_file()
        sheet_data = self._sheet_data(data, sheet.title)
        sheet.header_values = list(sheet_data.get("header") or [])

        rows: List[JsonRow] = []
        for row_number, raw in enumerate(sheet_data.get("rows") or [], start=2):
            if all(v == "" or v is None for v in raw):
                continue
            rows.append(JsonRow(self, sheet, row_number, raw))
        return rows

    async def append_row(self, sheet: JsonSheet, values: Dict[str, Any]) -> JsonRow:
        stored = [interpret_user_entered(values.get(col, "")) for col in sheet.header_values]
        async with self._lock:
            data = self._read_file()
            sheet_rows = self._sheet_data(data, sheet.title).setdefault("rows", [])
            sheet_rows.append(stored)
            row_number = len(sheet_rows) + 1
            self._write_file(data)
        return JsonRow(self, sheet, row_number, stored)

    async def _update_cells(self, name: str, row_number: int, cells: Dict[int, Any]) -> None:
        async with self._lock:
            data = self._read_file()
            sheet_rows = self._sheet_data(data, name).setdefault("rows", [])
            idx = row_number - 2
            if not 0 <= idx < len(sheet_rows):
                raise StoreError(f"Row {row_number} does not exist in sheet '{name}'")
            row = sheet_rows[idx]
            width = max(cells) + 1
            if len(row) < width:
                row.extend([""] * (width - len(row)))
            for col, value in cells.items():
                row[col] = value
            self._write_file(data)

    async def _delete_row(self, name: str, row_number: int) -> None:
        async with self._lock:
            data = self._read_file()
            sheet_rows = self._sheet_data(data, name).setdefault("rows", [])
            idx = row_number - 2
            if not 0 <= idx < len(sheet_rows):
                raise StoreError(f"Row {row_number} does not exist in sheet '{name}'")
            del sheet_rows[idx]
            self._write_file(data)
