# services/api/adapters/sheets/__init__.py
from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import gspread
from google.auth.exceptions import RefreshError
from google.oauth2.service_account import Credentials
from gspread.utils import DateTimeOption, ValueInputOption, ValueRenderOption, rowcol_to_a1

from core.errors import ConfigurationError, HeaderRowMissing
from core.marshalling import interpret_user_entered
from settings import extract_spreadsheet_id, normalize_private_key

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"

# "'Khach Thue'!A12:P12" -> 12
_UPDATED_RANGE_ROW_RE = re.compile(r"![A-Z]+(\d+)")


def _sa_client_from_json_or_path(google_sa_json: str) -> gspread.Client:
    """
    Accepts either:
      - absolute/relative path to a service-account JSON file, OR
      - a literal JSON string.
    Returns an authorized gspread Client.
    """
    if not google_sa_json:
        raise ConfigurationError("GOOGLE_SA_JSON is required (path to file or inline JSON).")

    # Try to treat as inline JSON first
    try:
        parsed = json.loads(google_sa_json)
    except json.JSONDecodeError:
        parsed = None

    try:
        if parsed is not None:
            creds = Credentials.from_service_account_info(parsed, scopes=SCOPES)
        else:
            # Not JSON; treat as file path
            creds = Credentials.from_service_account_file(google_sa_json, scopes=SCOPES)
    except (OSError, ValueError, KeyError) as e:
        raise ConfigurationError(f"Invalid service account credentials: {e}") from e
    return gspread.authorize(creds)


def _sa_client_from_key(client_email: str, private_key: str) -> gspread.Client:
    """Authorize with a bare client email + PEM private key."""
    if not client_email:
        raise ConfigurationError("GOOGLE_CLIENT_EMAIL is required when GOOGLE_PRIVATE_KEY is used.")
    info = {
        "type": "service_account",
        "client_email": client_email,
        "private_key": normalize_private_key(private_key),
        "token_uri": TOKEN_URI,
    }
    try:
        creds = Credentials.from_service_account_info(info, scopes=SCOPES)
    except ValueError as e:
        raise ConfigurationError(f"GOOGLE_PRIVATE_KEY could not be loaded: {e}") from e
    return gspread.authorize(creds)


class SheetsWorksheet:
    """SheetHandle over a gspread Worksheet."""

    def __init__(self, ws: gspread.Worksheet, header_values: Optional[List[str]] = None) -> None:
        self.ws = ws
        self.title = ws.title
        self.header_values: List[str] = list(header_values or [])

    def __repr__(self) -> str:
        return f"SheetsWorksheet({self.title!r})"


class SheetsRow:
    """
    RowHandle for one sheet row.

    The row is addressed by position. If rows above it are deleted after
    this handle was fetched, `save()` / `delete()` hit the wrong row; callers
    force-refresh right before mutating to keep that window small.
    """

    def __init__(self, sheet: SheetsWorksheet, row_number: int, values: Sequence[Any]) -> None:
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

    def _index(self, column: str) -> Optional[int]:
        try:
            return self._header.index(column)
        except ValueError:
            return None

    def get(self, column: str) -> Any:
        idx = self._index(column)
        return None if idx is None else self._values[idx]

    def set(self, column: str, value: Any) -> None:
        idx = self._index(column)
        if idx is None:
            return
        self._values[idx] = value
        self._dirty[idx] = value

    async def save(self) -> None:
        if not self._dirty:
            return
        data = [
            {"range": rowcol_to_a1(self._row_number, idx + 1), "values": [[value]]}
            for idx, value in sorted(self._dirty.items())
        ]
        await asyncio.to_thread(
            self._sheet.ws.batch_update,
            data,
            value_input_option=ValueInputOption.user_entered,
        )
        for idx, value in self._dirty.items():
            self._values[idx] = interpret_user_entered(value)
        self._dirty.clear()

    async def delete(self) -> None:
        await asyncio.to_thread(self._sheet.ws.delete_rows, self._row_number)

    def to_object(self) -> Dict[str, Any]:
        return {col: self._values[i] for i, col in enumerate(self._header) if col}


class GspreadBackend:
    """
    Google Sheets backend (one spreadsheet, one tab per collection).

    gspread is blocking, so every call runs in a worker thread.
    Reads use unformatted values (numbers come back as numbers, dates as
    formatted text); writes use USER_ENTERED.
    """

    def __init__(
        self,
        spreadsheet_id: Optional[str],
        google_sa_json: Optional[str] = None,
        client_email: Optional[str] = None,
        private_key: Optional[str] = None,
    ) -> None:
        self.spreadsheet_id = extract_spreadsheet_id(spreadsheet_id or "")
        self._google_sa_json = google_sa_json or ""
        self._client_email = client_email or ""
        self._private_key = private_key or ""

        self.gc: Optional[gspread.Client] = None
        self.ss: Optional[gspread.Spreadsheet] = None
        self._session_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Any) -> "GspreadBackend":
        return cls(
            spreadsheet_id=settings.spreadsheet_id(),
            google_sa_json=settings.resolved_google_sa_json(),
            client_email=settings.google_client_email,
            private_key=settings.google_private_key,
        )

    # ========== Session ==========

    def _authorize(self) -> gspread.Client:
        if self._private_key:
            return _sa_client_from_key(self._client_email, self._private_key)
        if self._google_sa_json:
            return _sa_client_from_json_or_path(self._google_sa_json)
        raise ConfigurationError(
            "Google Sheets configuration is missing: set GOOGLE_CLIENT_EMAIL + GOOGLE_PRIVATE_KEY "
            "or GOOGLE_SA_JSON / GOOGLE_SA_JSON_BASE64."
        )

    def _open(self) -> gspread.Spreadsheet:
        if not self.spreadsheet_id:
            raise ConfigurationError("SHEETS_SPREADSHEET_ID is required")
        gc = self._authorize()
        try:
            ss = gc.open_by_key(self.spreadsheet_id)
        except gspread.SpreadsheetNotFound as e:
            raise ConfigurationError(
                f"Spreadsheet {self.spreadsheet_id} not found or not shared with the service account"
            ) from e
        except RefreshError as e:
            raise ConfigurationError(f"Service account credentials rejected: {e}") from e
        self.gc = gc
        return ss

    async def load_session(self) -> None:
        if self.ss is not None:
            return
        async with self._session_lock:
            if self.ss is not None:
                return
            ss = await asyncio.to_thread(self._open)
            self.ss = ss
            logger.info("Connected to Google Sheets: %s", ss.title)

    def _spreadsheet(self) -> gspread.Spreadsheet:
        if self.ss is None:
            raise RuntimeError("Google Sheets session not loaded; call load_session() first")
        return self.ss

    # ========== Sheets ==========

    async def load_sheet(self, name: str) -> Optional[SheetsWorksheet]:
        ss = self._spreadsheet()
        try:
            ws = await asyncio.to_thread(ss.worksheet, name)
        except gspread.WorksheetNotFound:
            return None
        return SheetsWorksheet(ws)

    async def create_sheet(self, name: str, header: Sequence[str]) -> SheetsWorksheet:
        ss = self._spreadsheet()
        ws = await asyncio.to_thread(
            ss.add_worksheet,
            title=name,
            rows=200,
            cols=len(header) + 2,
        )
        sheet = SheetsWorksheet(ws)
        await self.set_header_row(sheet, header)
        logger.info("Created sheet '%s' (%d columns)", name, len(header))
        return sheet

    async def load_header_row(self, sheet: SheetsWorksheet) -> List[str]:
        values = await asyncio.to_thread(sheet.ws.row_values, 1)
        header = [str(v) for v in values]
        if not any(header):
            raise HeaderRowMissing(f"Sheet '{sheet.title}' has no header row")
        sheet.header_values = header
        return header

    def _write_header(self, sheet: SheetsWorksheet, columns: List[str]) -> None:
        ws = sheet.ws
        if len(columns) > ws.col_count:
            ws.add_cols(len(columns) - ws.col_count)
        ws.update(values=[columns], range_name="A1")

    async def set_header_row(self, sheet: SheetsWorksheet, columns: Sequence[str]) -> None:
        cols = list(columns)
        await asyncio.to_thread(self._write_header, sheet, cols)
        sheet.header_values = cols

    # ========== Rows ==========

    async def get_rows(self, sheet: SheetsWorksheet) -> List[SheetsRow]:
        values = await asyncio.to_thread(
            sheet.ws.get_all_values,
            value_render_option=ValueRenderOption.unformatted,
            date_time_render_option=DateTimeOption.formatted_string,
        )
        if not values:
            return []
        sheet.header_values = [str(v) for v in values[0]]

        rows: List[SheetsRow] = []
        for row_number, raw in enumerate(values[1:], start=2):
            if all(v == "" or v is None for v in raw):
                continue
            rows.append(SheetsRow(sheet, row_number, raw))
        return rows

    async def append_row(self, sheet: SheetsWorksheet, values: Dict[str, Any]) -> SheetsRow:
        header = sheet.header_values
        ordered = [values.get(col, "") for col in header]
        response = await asyncio.to_thread(
            sheet.ws.append_row,
            ordered,
            value_input_option=ValueInputOption.user_entered,
            table_range="A1",
        )
        updated_range = ((response or {}).get("updates") or {}).get("updatedRange", "")
        m = _UPDATED_RANGE_ROW_RE.search(updated_range)
        row_number = int(m.group(1)) if m else 0
        return SheetsRow(sheet, row_number, [interpret_user_entered(v) for v in ordered])
