"""
SQLite database connection management.

Provides async database initialization and a health probe.
Uses aiosqlite for async SQLite access.

Schema is defined in schema.sql (consolidated, no migrations).
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite
import structlog

from mediator.core.config import settings

log = structlog.get_logger(__name__)

SCHEMA_FILE = Path(__file__).parent / "schema.sql"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as an ISO-8601 UTC string (sortable)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def init_database(db_path: Path | None = None) -> None:
    """
    Initialize database from consolidated schema.

    Args:
        db_path: Optional path to database file. Uses settings.database_path if not provided.

    Creates the database file if it doesn't exist and applies the schema.
    Existing databases are left intact (CREATE ... IF NOT EXISTS).
    """
    db_path = Path(db_path or settings.database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    log.info("initializing_database", path=str(db_path))

    if not SCHEMA_FILE.exists():
        log.error("schema_file_not_found", path=str(SCHEMA_FILE))
        raise FileNotFoundError(f"Schema file not found: {SCHEMA_FILE}")

    async with aiosqlite.connect(db_path) as db:
        await db.execute("PRAGMA foreign_keys = ON")
        # WAL lets readers proceed while a turn or join holds the write lock
        await db.execute("PRAGMA journal_mode = WAL")
        await db.executescript(SCHEMA_FILE.read_text())
        await db.commit()

    log.info("database_initialized", path=str(db_path))


async def check_database_health(db_path: Path | None = None) -> dict:
    """
    Check database health for the readiness probe.

    Returns:
        Dict with health status and basic metrics.
    """
    db_path = db_path or settings.database_path
    try:
        async with aiosqlite.connect(db_path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM sessions")
            row = await cursor.fetchone()
            session_count = row[0] if row else 0

            cursor = await db.execute("PRAGMA integrity_check")
            integrity = await cursor.fetchone()

            return {
                "status": "healthy",
                "session_count": session_count,
                "integrity": integrity[0] if integrity else "unknown",
                "path": str(db_path),
            }
    except Exception as e:
        log.error("database_health_check_failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
