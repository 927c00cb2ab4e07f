# services/api/core/marshalling.py
from __future__ import annotations

import enum
import json
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, Mapping, Optional

# Prefix that forces Google Sheets (USER_ENTERED) to keep a value as text.
TEXT_SENTINEL = "'"

PHONE_FIELD = "soDienThoai"
ID_FIELD = "_id"

# Password / secret hash tags. Values carrying one of these are opaque text.
SECRET_HASH_PREFIXES = (
    "$2a$",
    "$2b$",
    "$2x$",
    "$2y$",
    "$argon2",
    "$1$",
    "$5$",
    "$6$",
    "pbkdf2",
    "scrypt",
)

_PHONE_DIGITS_RE = re.compile(r"^\d{9,10}$")
_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")


class FieldKind(str, enum.Enum):
    """How a column is encoded in the sheet and decoded back."""
    AUTO = "auto"        # prefix sniffing: JSON-looking text is decoded
    TEXT = "text"        # stays text, never retyped or decoded
    NUMBER = "number"    # numeric text becomes int/float
    JSON = "json"        # arrays / objects stored as JSON text
    PHONE = "phone"      # text-preserved, leading zero restored
    SECRET = "secret"    # opaque hash, never decoded


def is_secret_hash(value: str) -> bool:
    return value.startswith(SECRET_HASH_PREFIXES)


def denormalize_phone(value: Any) -> Any:
    """
    Turn a stored phone cell back into the canonical local format.

    912345678 (number)   -> "0912345678"
    "'0912345678"        -> "0912345678"
    "912345678"          -> "0912345678"
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        return str(value).zfill(10)
    if isinstance(value, str):
        text = value[1:] if value.startswith(TEXT_SENTINEL) else value
        if _PHONE_DIGITS_RE.match(text) and not text.startswith("0"):
            text = "0" + text
        return text
    return value


def canonical_phone(value: Any) -> str:
    """Digits-only phone form used for comparisons."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value).zfill(10)
    text = str(value if value is not None else "")
    if text.startswith(TEXT_SENTINEL):
        text = text[1:]
    digits = re.sub(r"\D", "", text)
    if _PHONE_DIGITS_RE.match(digits) and not digits.startswith("0"):
        return "0" + digits
    return digits


def interpret_user_entered(value: Any) -> Any:
    """
    What Google Sheets stores for a value written with USER_ENTERED input.

    "'0912345678" -> "0912345678" (text, quote dropped)
    "0912345678"  -> 912345678    (number: the leading zero is lost)
    "TRUE"        -> True
    Anything else is kept as text. Date parsing is not modelled: dates are
    read back as formatted strings.
    """
    if not isinstance(value, str):
        return value
    if value.startswith(TEXT_SENTINEL):
        return value[1:]
    if value in ("TRUE", "FALSE", "true", "false", "True", "False"):
        return value.upper() == "TRUE"
    s = value.strip()
    if _NUMBER_RE.match(s):
        return float(s) if "." in s else int(s)
    return value


def _would_be_retyped(text: str) -> bool:
    return text.startswith("=") or interpret_user_entered(text) != text


def _try_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        # malformed JSON-looking text is data, not an error
        return text


def _to_number(value: Any) -> Any:
    if isinstance(value, str):
        s = value.strip()
        if _NUMBER_RE.match(s):
            return float(s) if "." in s else int(s)
    return value


class RowMarshaller:
    """
    Converts between sheet rows ({column: cell}) and documents.

    Columns declared in ``field_kinds`` follow their kind; every other column
    is decoded with the AUTO heuristic (text starting with '[' or '{' is
    JSON-decoded unless it is a recognised secret hash).
    """

    def __init__(
        self,
        field_kinds: Optional[Mapping[str, FieldKind]] = None,
        phone_fields: Iterable[str] = (PHONE_FIELD,),
    ) -> None:
        # ids are always text
        kinds: Dict[str, FieldKind] = {ID_FIELD: FieldKind.TEXT}
        kinds.update({name: FieldKind.PHONE for name in phone_fields})
        kinds.update(field_kinds or {})
        self.field_kinds = kinds

    def kind_of(self, field: str) -> FieldKind:
        return self.field_kinds.get(field, FieldKind.AUTO)

    @property
    def phone_fields(self) -> set[str]:
        return {k for k, v in self.field_kinds.items() if v is FieldKind.PHONE}

    # ---------- write side ----------

    def encode_value(self, field: str, value: Any) -> str:
        """Encode one non-None value into the text written to the cell."""
        kind = self.kind_of(field)

        if kind is FieldKind.PHONE and isinstance(value, str):
            return value if value.startswith(TEXT_SENTINEL) else TEXT_SENTINEL + value
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if isinstance(value, (list, tuple, dict)):
            return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
        if isinstance(value, (datetime, date)):
            return value.isoformat()

        text = str(value)
        if isinstance(value, str):
            if kind in (FieldKind.TEXT, FieldKind.SECRET) and _would_be_retyped(text):
                return TEXT_SENTINEL + text
            if text.startswith("="):
                # USER_ENTERED would evaluate it as a formula
                return TEXT_SENTINEL + text
        return text

    def document_to_row(self, doc: Mapping[str, Any]) -> Dict[str, str]:
        """Fields that are None are left out (the cell stays blank)."""
        return {
            key: self.encode_value(key, value)
            for key, value in doc.items()
            if value is not None
        }

    # ---------- read side ----------

    def decode_value(self, field: str, value: Any) -> Any:
        kind = self.kind_of(field)

        if kind is FieldKind.PHONE:
            value = denormalize_phone(value)
        elif kind is FieldKind.NUMBER:
            return _to_number(value)
        elif kind in (FieldKind.TEXT, FieldKind.SECRET):
            if isinstance(value, float) and value.is_integer():
                return str(int(value))
            if isinstance(value, int) and not isinstance(value, bool):
                return str(value)
            return value
        elif kind is FieldKind.JSON:
            if isinstance(value, str) and value.lstrip().startswith(("[", "{")):
                return _try_json(value)
            return value

        if (
            isinstance(value, str)
            and value.startswith(("[", "{"))
            and not is_secret_hash(value)
        ):
            return _try_json(value)
        return value

    def row_to_document(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        return {key: self.decode_value(key, value) for key, value in row.items()}


DEFAULT_MARSHALLER = RowMarshaller()


def document_to_row(doc: Mapping[str, Any]) -> Dict[str, str]:
    return DEFAULT_MARSHALLER.document_to_row(doc)


def row_to_document(row: Mapping[str, Any]) -> Dict[str, Any]:
    return DEFAULT_MARSHALLER.row_to_document(row)
