# services/api/core/store.py
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from adapters.base import RowHandle, SheetHandle, SpreadsheetBackend
from core.cache import DEFAULT_TTL_SECONDS, RowCache
from core.errors import ConfigurationError
from core.headers import ensure_headers
from core.ids import generate_id, normalize_id
from core.marshalling import DEFAULT_MARSHALLER, RowMarshaller
from core.query import apply_pipeline, matches
from core.retry import DEFAULT_RETRY_OPTIONS, RetryOptions, with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_HEADERS = ["_id", "createdAt", "updatedAt"]

Document = Dict[str, Any]


def utc_iso() -> str:
    """Current UTC time as ISO-8601 with milliseconds, e.g. 2025-01-31T08:15:00.123Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SheetsDatabase:
    """
    Document-store semantics over a spreadsheet backend.

    One instance owns one backend session and one row cache; every
    collection (sheet tab) goes through it. Construct it once at startup
    and pass it to whoever needs it.

    Consistency model:
      - reads come from the row cache (TTL `cache_ttl`, default 5s)
      - updates / deletes force-refresh before touching a row
      - every write invalidates the collection's cache entry, so the next
        read in this process sees it
      - no locking / versioning: two concurrent updates of one row race and
        the last save wins
    """

    def __init__(
        self,
        backend: SpreadsheetBackend,
        cache_ttl: float = DEFAULT_TTL_SECONDS,
        retry_options: Optional[RetryOptions] = None,
        marshallers: Optional[Mapping[str, RowMarshaller]] = None,
        default_marshaller: Optional[RowMarshaller] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.retry_options = retry_options or DEFAULT_RETRY_OPTIONS
        self._sleep = sleep
        self._marshallers: Dict[str, RowMarshaller] = dict(marshallers or {})
        self._default_marshaller = default_marshaller or DEFAULT_MARSHALLER

        self._connected = False
        self._connect_lock = asyncio.Lock()
        self._sheets: Dict[str, SheetHandle] = {}
        self._sheet_locks: Dict[str, asyncio.Lock] = {}

        self.cache = RowCache(self._fetch_rows, ttl=cache_ttl, clock=clock)

    # ========== Plumbing ==========

    async def retry(self, op: Callable[[], Awaitable[T]], options: Optional[RetryOptions] = None) -> T:
        return await with_retry(op, options or self.retry_options, sleep=self._sleep)

    def register_marshaller(self, collection: str, marshaller: RowMarshaller) -> None:
        self._marshallers[collection] = marshaller

    def marshaller_for(self, collection: str) -> RowMarshaller:
        return self._marshallers.get(collection, self._default_marshaller)

    async def connect(self) -> None:
        """Load the backend session once; later calls are no-ops."""
        if self._connected:
            return
        async with self._connect_lock:
            if self._connected:
                return
            await self.retry(self.backend.load_session)
            self._connected = True

    async def get_sheet(self, name: str, header: Optional[Sequence[str]] = None) -> SheetHandle:
        """
        Resolve a sheet by name.

        A missing sheet is created with `header`, or `_id`, `createdAt`,
        `updatedAt` when no header is given.
        """
        await self.connect()
        sheet = self._sheets.get(name)
        if sheet is not None:
            return sheet

        lock = self._sheet_locks.setdefault(name, asyncio.Lock())
        async with lock:
            sheet = self._sheets.get(name)
            if sheet is None:
                sheet = await self.retry(lambda: self.backend.load_sheet(name))
                if sheet is None:
                    logger.info("Sheet '%s' not found, creating it", name)
                    sheet = await self.retry(
                        lambda: self.backend.create_sheet(name, list(header or DEFAULT_HEADERS)),
                        self.retry_options.rate_limit_only(),
                    )
                self._sheets[name] = sheet
        return sheet

    async def _fetch_rows(self, collection: str) -> List[RowHandle]:
        sheet = await self.get_sheet(collection)
        return await self.retry(lambda: self.backend.get_rows(sheet))

    @staticmethod
    def _locate(rows: Sequence[RowHandle], target_id: str) -> Optional[RowHandle]:
        for row in rows:
            if normalize_id(row.get("_id")) == target_id:
                return row
        return None

    def invalidate(self, collection: str) -> None:
        self.cache.invalidate(collection)

    # ========== Reads ==========

    async def find(
        self,
        collection: str,
        query: Optional[Mapping[str, Any]] = None,
        force_refresh: bool = False,
    ) -> List[Document]:
        rows = await self.cache.get_rows(collection, force_refresh=force_refresh)
        marshaller = self.marshaller_for(collection)
        if query:
            phone_fields = marshaller.phone_fields
            rows = [r for r in rows if matches(r.to_object(), query, phone_fields)]
        return [marshaller.row_to_document(r.to_object()) for r in rows]

    async def find_by_id(self, collection: str, doc_id: Any) -> Optional[Document]:
        target = normalize_id(doc_id)
        if not target:
            return None
        rows = await self.cache.get_rows(collection)
        row = self._locate(rows, target)
        if row is None:
            return None
        return self.marshaller_for(collection).row_to_document(row.to_object())

    async def aggregate(self, collection: str, pipeline: Sequence[Mapping[str, Any]]) -> List[Document]:
        docs = await self.find(collection)
        return apply_pipeline(docs, pipeline, self.marshaller_for(collection).phone_fields)

    # ========== Writes ==========

    async def create(self, collection: str, data: Mapping[str, Any]) -> Document:
        """
        Append a new document.

        `_id` is generated when missing. Duplicate `_id`s are NOT rejected;
        uniqueness is the caller's job.
        """
        sheet = await self.get_sheet(collection)
        marshaller = self.marshaller_for(collection)

        doc: Document = dict(data)
        if not normalize_id(doc.get("_id")):
            doc["_id"] = generate_id()
        now = utc_iso()
        doc["createdAt"] = now
        doc["updatedAt"] = now

        values = marshaller.document_to_row(doc)
        # header growth and the append it is laid out for must not interleave
        # with another create on the same sheet
        lock = self._sheet_locks.setdefault(collection, asyncio.Lock())
        try:
            async with lock:
                await ensure_headers(self.backend, sheet, list(doc.keys()), run=self.retry)
                # an append is not idempotent: only retry when the request was rejected
                row = await self.retry(
                    lambda: self.backend.append_row(sheet, values),
                    self.retry_options.rate_limit_only(),
                )
        finally:
            self.cache.invalidate(collection)

        logger.debug("Created %s/%s", collection, doc["_id"])
        return marshaller.row_to_document(row.to_object())

    async def update_by_id(
        self,
        collection: str,
        doc_id: Any,
        update: Mapping[str, Any],
    ) -> Optional[Document]:
        """
        Merge `update` into the row with this `_id` and save it.

        Fields without an existing column are dropped: the header is not
        grown on update. `_id` and None values in `update` are ignored.
        Returns None when no row has this `_id`.
        """
        target = normalize_id(doc_id)
        if not target:
            return None

        rows = await self.cache.get_rows(collection, force_refresh=True)
        row = self._locate(rows, target)
        if row is None:
            return None

        marshaller = self.marshaller_for(collection)
        known = row.to_object()
        dropped = [k for k, v in update.items() if k != "_id" and v is not None and k not in known]
        if dropped:
            logger.warning(
                "Update of %s/%s: no column for %s, values not saved",
                collection, target, dropped,
            )

        try:
            for key, value in update.items():
                if key == "_id" or value is None:
                    continue
                row.set(key, marshaller.encode_value(key, value))
            row.set("updatedAt", utc_iso())
            await self.retry(row.save)
        finally:
            # also on failure: the cached row object may hold unsaved values
            self.cache.invalidate(collection)

        return marshaller.row_to_document(row.to_object())

    async def delete_by_id(self, collection: str, doc_id: Any) -> bool:
        target = normalize_id(doc_id)
        if not target:
            return False

        rows = await self.cache.get_rows(collection, force_refresh=True)
        row = self._locate(rows, target)
        if row is None:
            return False

        try:
            # deletes address rows by position: never repeat one that may have landed
            await self.retry(row.delete, self.retry_options.rate_limit_only())
        finally:
            self.cache.invalidate(collection)
        logger.debug("Deleted %s/%s", collection, target)
        return True


def create_database(settings: Any = None) -> SheetsDatabase:
    """
    Build a SheetsDatabase for the configured backend.

    Reads `settings.storage_backend` ("sheets" or "json"); defaults to
    `get_settings()` when no settings object is given.
    """
    if settings is None:
        from settings import get_settings

        settings = get_settings()

    backend_name = (settings.storage_backend or "sheets").lower()
    if backend_name == "sheets":
        from adapters.sheets import GspreadBackend

        backend: SpreadsheetBackend = GspreadBackend.from_settings(settings)
    elif backend_name == "json":
        from adapters.json import JsonBackend

        backend = JsonBackend(settings.json_store_path)
    else:
        raise ConfigurationError(f"Unknown STORAGE_BACKEND: {settings.storage_backend!r}")

    logger.info("Storage backend: %s", backend_name.upper())

    from models.collections import collection_marshallers

    return SheetsDatabase(
        backend,
        cache_ttl=settings.cache_ttl_seconds,
        retry_options=settings.retry_options(),
        marshallers=collection_marshallers(),
    )
