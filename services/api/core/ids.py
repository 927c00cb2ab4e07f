# services/api/core/ids.py
"""
ID helpers.

Relation fields in the sheets hold ids in several shapes: a plain string,
a populated relation object ({"_id": ..., "tenPhong": ...}) or a one-element
array. Everything here reduces those to a single comparable string.
"""
from __future__ import annotations

import secrets
import string
import time
from typing import Any, Iterable, List, Optional

_BASE36 = string.digits + string.ascii_lowercase


def normalize_id(value: Any) -> Optional[str]:
    """
    Normalize an id-like value to a string.

    Rules, in order:
      - None / empty string / empty list -> None
      - str -> itself
      - int / float -> str(value)
      - list / tuple -> normalize_id(value[0])  (relation arrays are assumed
        homogeneous and order-stable)
      - dict -> value["_id"], else value["id"], else None (never str(dict):
        a relation object without an id does not name a document)
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, (list, tuple)):
        return normalize_id(value[0]) if value else None
    if isinstance(value, dict):
        for key in ("_id", "id"):
            nested = normalize_id(value.get(key))
            if nested:
                return nested
        return None
    text = str(value)
    return text or None


def normalize_id_array(values: Any) -> List[str]:
    """Normalize every element and drop the ones that do not resolve to an id."""
    if values is None or values == "":
        return []
    if not isinstance(values, (list, tuple)):
        single = normalize_id(values)
        return [single] if single else []
    return [nid for nid in (normalize_id(v) for v in values) if nid is not None]


def compare_ids(a: Any, b: Any) -> bool:
    na = normalize_id(a)
    nb = normalize_id(b)
    if not na or not nb:
        return False
    return na == nb


def is_id_in_array(value: Any, candidates: Iterable[Any]) -> bool:
    target = normalize_id(value)
    if not target:
        return False
    return any(compare_ids(item, target) for item in candidates or [])


def extract_id_from_relationship(relation: Any) -> Optional[str]:
    """Id of a relation field that may or may not have been populated."""
    return normalize_id(relation)


def safe_id_equals(a: Any, b: Any) -> bool:
    # two missing ids compare equal here, unlike compare_ids
    return (normalize_id(a) or "") == (normalize_id(b) or "")


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """
    Millisecond timestamp in base 36 followed by 11 random base-36 characters.

    Unique enough for this domain; not a cryptographic guarantee.
    """
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(11))
    return stamp + suffix
