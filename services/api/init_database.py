"""
Provision every rentbook collection tab with its header row.

Creates missing tabs, appends catalogue columns missing from existing tabs
and leaves extra columns alone. Safe to run repeatedly.

    rentbook-init-db                      # uses .env / environment
    rentbook-init-db --backend json --json-path data/dev.json
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional, Sequence

from core.errors import ConfigurationError, HeaderRowMissing
from core.headers import ensure_headers
from core.store import SheetsDatabase, create_database
from models.collections import COLLECTION_NAMES, headers_for
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


async def init_collections(
    db: SheetsDatabase,
    collections: Optional[Sequence[str]] = None,
) -> List[Dict[str, object]]:
    """
    Ensure each collection exists with (at least) its catalogue header.

    Returns one result per collection:
        {"sheet": name, "status": "created" | "updated" | "exists", "columns": [...]}
    """
    await db.connect()
    results: List[Dict[str, object]] = []

    for name in collections or COLLECTION_NAMES:
        wanted = headers_for(name)
        existed = await db.retry(lambda: db.backend.load_sheet(name)) is not None
        sheet = await db.get_sheet(name, header=wanted)
        try:
            before = await db.retry(lambda: db.backend.load_header_row(sheet))
        except HeaderRowMissing:
            before = []
        header = await ensure_headers(db.backend, sheet, wanted, run=db.retry)

        added = [c for c in header if c not in before]
        if not existed:
            status = "created"
        elif added:
            status = "updated"
        else:
            status = "exists"

        if status == "updated":
            logger.info("%s: added columns %s", name, added)
        else:
            logger.info("%s: %s (%d columns)", name, status, len(header))
        results.append({"sheet": name, "status": status, "columns": header, "added": added})
        db.invalidate(name)

    return results


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision rentbook collection tabs")
    parser.add_argument("--backend", choices=("sheets", "json"), help="override STORAGE_BACKEND")
    parser.add_argument("--json-path", help="override JSON_STORE_PATH")
    parser.add_argument(
        "collections",
        nargs="*",
        help=f"collections to provision (default: all of {', '.join(COLLECTION_NAMES)})",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    settings: Settings = get_settings()
    overrides = {}
    if args.backend:
        overrides["storage_backend"] = args.backend
    if args.json_path:
        overrides["json_store_path"] = args.json_path
    if overrides:
        settings = settings.model_copy(update=overrides)

    logging.getLogger().setLevel(settings.log_level.upper())

    unknown = [c for c in args.collections if c not in COLLECTION_NAMES]
    if unknown:
        logger.error("Unknown collection(s): %s", ", ".join(unknown))
        return 2

    try:
        db = create_database(settings)
        results = asyncio.run(init_collections(db, args.collections or None))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1

    created = sum(1 for r in results if r["status"] == "created")
    updated = sum(1 for r in results if r["status"] == "updated")
    logger.info(
        "Database initialization completed: %d sheets (%d created, %d updated)",
        len(results), created, updated,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
