"""
Shared fixtures: an in-memory spreadsheet backend that counts remote calls
and can be told to fail, a manual clock and a recording sleep.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from collections import Counter, defaultdict
from typing import Any, Dict, List, Optional, Sequence

import pytest

from core.errors import HeaderRowMissing
from core.marshalling import interpret_user_entered
from core.retry import RetryOptions
from core.store import SheetsDatabase


class FakeAPIError(Exception):
    """Stands in for gspread's APIError: carries an HTTP status code."""

    def __init__(self, status_code: int, message: str = ""):
        super().__init__(message or f"APIError: [{status_code}]")
        self.status_code = status_code


class FakeSheet:
    def __init__(self, title: str, backend: "FakeBackend"):
        self.title = title
        self.header_values: List[str] = []
        self._backend = backend


class FakeRow:
    def __init__(self, backend: "FakeBackend", sheet: FakeSheet, cells: List[Any]):
        self._backend = backend
        self._sheet = sheet
        self._cells = cells  # the backend's stored row, written on save()
        self._values = list(cells)  # snapshot taken at fetch time
        self._header = list(backend.headers[sheet.title])
        self._pending: Dict[str, Any] = {}

    def _position(self) -> int:
        table = self._backend.tables[self._sheet.title]
        return next(i for i, r in enumerate(table) if r is self._cells)

    @property
    def row_number(self) -> int:
        return self._position() + 2

    def get(self, column: str) -> Any:
        if column in self._pending:
            return self._pending[column]
        if column not in self._header:
            return None
        idx = self._header.index(column)
        return self._values[idx] if idx < len(self._values) else ""

    def set(self, column: str, value: Any) -> None:
        if column in self._header:
            self._pending[column] = value

    async def save(self) -> None:
        await self._backend._call("save")
        for column, value in self._pending.items():
            idx = self._header.index(column)
            stored = interpret_user_entered(value)
            for target in (self._cells, self._values):
                while len(target) <= idx:
                    target.append("")
                target[idx] = stored
        self._pending.clear()

    async def delete(self) -> None:
        await self._backend._call("delete")
        del self._backend.tables[self._sheet.title][self._position()]

    def to_object(self) -> Dict[str, Any]:
        return {col: self.get(col) for col in self._header if col}


class FakeBackend:
    """
    In-memory SpreadsheetBackend.

    `calls` counts every remote operation by name; `fail(name, *errors)`
    queues errors raised by the next calls of that operation.
    """

    def __init__(self):
        self.headers: Dict[str, List[str]] = {}
        self.tables: Dict[str, List[List[Any]]] = {}
        self.calls: Counter = Counter()
        self._failures: Dict[str, List[BaseException]] = defaultdict(list)

    def fail(self, name: str, *errors: BaseException) -> None:
        self._failures[name].extend(errors)

    async def _call(self, name: str) -> None:
        self.calls[name] += 1
        queued = self._failures.get(name)
        if queued:
            raise queued.pop(0)

    # helpers for tests
    def seed(self, name: str, header: Sequence[str], rows: Sequence[Sequence[Any]] = ()) -> None:
        self.headers[name] = list(header)
        self.tables[name] = [list(r) for r in rows]

    def raw_rows(self, name: str) -> List[Dict[str, Any]]:
        header = self.headers[name]
        return [
            {col: (r[i] if i < len(r) else "") for i, col in enumerate(header)}
            for r in self.tables[name]
        ]

    # SpreadsheetBackend
    async def load_session(self) -> None:
        await self._call("load_session")

    async def load_sheet(self, name: str) -> Optional[FakeSheet]:
        await self._call("load_sheet")
        if name not in self.headers:
            return None
        sheet = FakeSheet(name, self)
        sheet.header_values = list(self.headers[name])
        return sheet

    async def create_sheet(self, name: str, header: Sequence[str]) -> FakeSheet:
        await self._call("create_sheet")
        self.seed(name, header)
        sheet = FakeSheet(name, self)
        sheet.header_values = list(header)
        return sheet

    async def load_header_row(self, sheet: FakeSheet) -> List[str]:
        await self._call("load_header_row")
        header = self.headers.get(sheet.title) or []
        if not header:
            raise HeaderRowMissing(sheet.title)
        sheet.header_values = list(header)
        return list(header)

    async def set_header_row(self, sheet: FakeSheet, columns: Sequence[str]) -> None:
        await self._call("set_header_row")
        self.headers[sheet.title] = list(columns)
        sheet.header_values = list(columns)

    async def get_rows(self, sheet: FakeSheet) -> List[FakeRow]:
        await self._call("get_rows")
        sheet.header_values = list(self.headers[sheet.title])
        return [FakeRow(self, sheet, cells) for cells in self.tables[sheet.title]]

    async def append_row(self, sheet: FakeSheet, values: Dict[str, Any]) -> FakeRow:
        await self._call("append_row")
        cells = [interpret_user_entered(values.get(col, "")) for col in self.headers[sheet.title]]
        self.tables[sheet.title].append(cells)
        return FakeRow(self, sheet, cells)


class ManualClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def db(backend, clock, sleep):
    return SheetsDatabase(
        backend,
        cache_ttl=5.0,
        retry_options=RetryOptions(),
        clock=clock,
        sleep=sleep,
    )
