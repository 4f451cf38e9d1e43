#!/usr/bin/env python3
"""
Rebuild the mediator database from schema.sql.

Deletes the SQLite file (sessions, messages, participants and mediator
settings) and re-applies the schema. Development use only.

Usage:
    python scripts/rebuild_database.py --yes
    python scripts/rebuild_database.py --db-path /tmp/mediator.db --yes
"""

import argparse
import asyncio
from pathlib import Path

import structlog

from mediator.core.config import settings
from mediator.persistence.database import check_database_health, init_database

log = structlog.get_logger(__name__)


async def rebuild_database(db_path: Path) -> dict:
    if db_path.exists():
        log.warning(
            "deleting_database",
            path=str(db_path),
            size_kb=f"{db_path.stat().st_size / 1024:.2f}",
        )
        db_path.unlink()
    else:
        log.info("database_not_found", path=str(db_path))

    await init_database(db_path)

    health = await check_database_health(db_path)
    log.info("database_rebuilt", path=str(db_path), status=health["status"])
    return health


def main() -> None:
    parser = argparse.ArgumentParser(description="Rebuild the mediator database")
    parser.add_argument(
        "--db-path",
        type=Path,
        default=settings.database_path,
        help="SQLite file to rebuild (default: DATABASE_PATH setting)",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm deletion of every stored session",
    )
    args = parser.parse_args()

    if not args.yes:
        parser.error("refusing to delete data without --yes")

    asyncio.run(rebuild_database(args.db_path))


if __name__ == "__main__":
    main()
