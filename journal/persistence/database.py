"""
SQLite database connection management for conversation transcripts.

Provides async database initialization and a health probe.
Uses aiosqlite for async SQLite access.

Schema is defined in schema.sql (idempotent, no migrations).
"""

import aiosqlite
from pathlib import Path
import structlog

from journal.core.config import settings

log = structlog.get_logger(__name__)

SCHEMA_FILE = Path(__file__).parent / "schema.sql"


async def init_database(db_path: Path | None = None) -> None:
    """
    Initialize database from schema.sql.

    Args:
        db_path: Optional path to database file. Uses settings.database_path if not provided.

    Creates the database file if it doesn't exist. Existing databases are
    left intact (CREATE TABLE IF NOT EXISTS).
    """
    db_path = db_path or settings.database_path

    db_path.parent.mkdir(parents=True, exist_ok=True)

    log.info("initializing_database", path=str(db_path))

    if not SCHEMA_FILE.exists():
        log.error("schema_file_not_found", path=str(SCHEMA_FILE))
        raise FileNotFoundError(f"Schema file not found: {SCHEMA_FILE}")

    async with aiosqlite.connect(db_path) as db:
        # WAL for concurrent reads while a turn is writing
        await db.execute("PRAGMA journal_mode = WAL")

        schema_sql = SCHEMA_FILE.read_text()
        await db.executescript(schema_sql)
        await db.commit()

    log.info("database_initialized", path=str(db_path))


async def check_database_health() -> dict:
    """
    Check database health for health endpoint.

    Returns:
        Dict with health status and basic metrics.
    """
    try:
        async with aiosqlite.connect(settings.database_path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM utterances")
            row = await cursor.fetchone()
            utterance_count = row[0] if row else 0

            return {
                "status": "healthy",
                "utterance_count": utterance_count,
                "path": str(settings.database_path),
            }
    except Exception as e:
        log.error("database_health_check_failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
