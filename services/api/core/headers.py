# services/api/core/headers.py
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from adapters.base import SheetHandle, SpreadsheetBackend
from core.errors import HeaderRowMissing

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (zero-arg coroutine function) -> result; lets the store route header calls through retry
Runner = Callable[[Callable[[], Awaitable[T]]], Awaitable[T]]


async def _direct(op: Callable[[], Awaitable[T]]) -> T:
    return await op()


def _dedupe(names: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            out.append(name)
    return out


async def ensure_headers(
    backend: SpreadsheetBackend,
    sheet: SheetHandle,
    field_names: Iterable[str],
    run: Optional[Runner] = None,
) -> List[str]:
    """
    Make sure row 1 of `sheet` contains every name in `field_names`.

    - No header yet  -> header becomes exactly `field_names`.
    - Header exists  -> missing names are appended at the end; existing
      columns keep their order and position. Columns are never removed.

    Returns the resulting header.
    """
    run = run or _direct
    wanted = _dedupe(field_names)

    try:
        current = await run(lambda: backend.load_header_row(sheet))
    except HeaderRowMissing:
        logger.info("Sheet '%s' has no header row, writing %d columns", sheet.title, len(wanted))
        await run(lambda: backend.set_header_row(sheet, wanted))
        return wanted

    missing = [name for name in wanted if name not in current]
    if not missing:
        return list(current)

    header = list(current) + missing
    logger.info("Sheet '%s': adding columns %s", sheet.title, missing)
    await run(lambda: backend.set_header_row(sheet, header))
    return header
