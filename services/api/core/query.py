# services/api/core/query.py
"""
MongoDB-subset filtering and aggregation over rows / documents.

Supported filter shapes, per field (all fields AND-ed):
    {"trangThai": "dangThue"}                       literal equality
    {"trangThai": {"$ne": "daXoa"}}                 $eq / $ne
    {"phong": {"$in": ["p1", "p2"]}}                $in / $nin
    {"ten": {"$regex": "^nguyen", "$options": "i"}} $regex (+ flags i, m, s, x)

`email` is compared trimmed and case-insensitively, phone fields by their
digits-only canonical form, for every operator.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from core.errors import UnsupportedStageError
from core.marshalling import PHONE_FIELD, canonical_phone

logger = logging.getLogger(__name__)

EMAIL_FIELD = "email"

_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}

SUPPORTED_STAGES = ("$match", "$sort", "$skip", "$limit")


def _normalize_email(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().casefold()
    return value


def _identity(value: Any) -> Any:
    return value


def _normalizer_for(field: str, phone_fields: Iterable[str]) -> Callable[[Any], Any]:
    if field == EMAIL_FIELD:
        return _normalize_email
    if field in phone_fields:
        return canonical_phone
    return _identity


def _strict_equals(actual: Any, expected: Any) -> bool:
    if expected is None:
        # a blank cell and a missing column both read as "no value"
        return actual is None or actual == ""
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    return actual == expected


def _is_operator_object(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(value) and all(
        isinstance(k, str) and k.startswith("$") for k in value
    )


def _as_list(operand: Any) -> List[Any]:
    if isinstance(operand, (list, tuple, set, frozenset)):
        return list(operand)
    return [operand]


def _regex_matches(field: str, actual: Any, pattern: Any, options: str) -> bool:
    flags = 0
    for ch in options or "":
        flags |= _REGEX_FLAGS.get(ch, 0)
    if field == EMAIL_FIELD:
        flags |= re.IGNORECASE
    text = "" if actual is None else str(actual)
    if isinstance(pattern, re.Pattern):
        return pattern.search(text) is not None
    return re.search(str(pattern), text, flags) is not None


def _match_operators(
    field: str,
    actual: Any,
    ops: Mapping[str, Any],
    normalize: Callable[[Any], Any],
) -> bool:
    value = normalize(actual)
    for op, operand in ops.items():
        if op == "$options":
            continue
        if op == "$eq":
            ok = _strict_equals(value, normalize(operand))
        elif op == "$ne":
            ok = not _strict_equals(value, normalize(operand))
        elif op == "$in":
            ok = any(_strict_equals(value, normalize(x)) for x in _as_list(operand))
        elif op == "$nin":
            ok = not any(_strict_equals(value, normalize(x)) for x in _as_list(operand))
        elif op == "$regex":
            ok = _regex_matches(field, value, operand, ops.get("$options", ""))
        else:
            logger.warning("Unsupported query operator %s on field '%s'", op, field)
            ok = False
        if not ok:
            return False
    return True


def matches(
    record: Mapping[str, Any],
    query: Optional[Mapping[str, Any]],
    phone_fields: Iterable[str] = (PHONE_FIELD,),
) -> bool:
    """True when `record` (raw row object or document) satisfies every key of `query`."""
    if not query:
        return True
    phone_fields = tuple(phone_fields)

    for field, expected in query.items():
        actual = record.get(field)
        normalize = _normalizer_for(field, phone_fields)
        if _is_operator_object(expected):
            if not _match_operators(field, actual, expected, normalize):
                return False
        elif not _strict_equals(normalize(actual), normalize(expected)):
            return False
    return True


# ========== Aggregation ==========

def _sort_key(value: Any) -> tuple:
    if value is None or value == "":
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4, json.dumps(value, sort_keys=True, default=str))


def apply_pipeline(
    documents: Iterable[Dict[str, Any]],
    pipeline: Sequence[Mapping[str, Any]],
    phone_fields: Iterable[str] = (PHONE_FIELD,),
) -> List[Dict[str, Any]]:
    """
    Run $match / $sort / $skip / $limit stages over in-memory documents.

    Within a single stage object the operations run in that fixed order.
    $sort uses only its first key. A $limit of 0 means "no limit".
    """
    data = list(documents)
    phone_fields = tuple(phone_fields)

    for stage in pipeline:
        unknown = [k for k in stage if k not in SUPPORTED_STAGES]
        if unknown:
            raise UnsupportedStageError(f"Unsupported aggregation stage(s): {', '.join(unknown)}")

        if "$match" in stage:
            data = [d for d in data if matches(d, stage["$match"], phone_fields)]

        if "$sort" in stage:
            spec = stage["$sort"]
            if not spec:
                raise UnsupportedStageError("$sort needs one field")
            key, direction = next(iter(spec.items()))
            if direction not in (1, -1):
                raise UnsupportedStageError(f"$sort direction must be 1 or -1, got {direction!r}")
            data = sorted(data, key=lambda d: _sort_key(d.get(key)), reverse=direction == -1)

        if "$skip" in stage:
            data = data[int(stage["$skip"]):]

        if "$limit" in stage:
            limit = int(stage["$limit"])
            if limit > 0:
                data = data[:limit]

    return data
