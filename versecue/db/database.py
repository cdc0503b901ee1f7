"""Async SQLite database for the local verse store."""

import logging
import aiosqlite
from pathlib import Path

logger = logging.getLogger("versecue.db")

_db: aiosqlite.Connection | None = None


async def init_db(db_path: Path) -> aiosqlite.Connection:
    """Initialize database and create tables."""
    global _db
    db_path.parent.mkdir(parents=True, exist_ok=True)
    _db = await aiosqlite.connect(str(db_path))
    _db.row_factory = aiosqlite.Row
    await _db.execute("PRAGMA journal_mode=WAL")
    await _db.execute("PRAGMA busy_timeout=30000")
    await _create_tables(_db)
    await _db.commit()

    # Integrity check on startup; warns but does not abort
    rows = await _db.execute_fetchall("PRAGMA integrity_check")
    result = rows[0][0] if rows else "unknown"
    if result != "ok":
        logger.warning("Database integrity check FAILED: %s", result)
    else:
        logger.debug("Database integrity check passed")

    return _db


async def get_db() -> aiosqlite.Connection:
    """Get the database connection."""
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_db first.")
    return _db


async def close_db():
    """Close the database connection."""
    global _db
    if _db:
        await _db.close()
        _db = None


async def _create_tables(db: aiosqlite.Connection):
    """Create all tables if they don't exist."""

    await db.execute("""
        CREATE TABLE IF NOT EXISTS verses (
            translation     TEXT NOT NULL,
            book            TEXT NOT NULL,
            chapter         INTEGER NOT NULL,
            verse           INTEGER NOT NULL,
            text            TEXT NOT NULL,
            PRIMARY KEY (translation, book, chapter, verse)
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_verses_lookup
        ON verses(translation, book, chapter)
    """)


async def insert_verses(db: aiosqlite.Connection, translation: str, rows: list[tuple[str, int, int, str]]) -> int:
    """Bulk upsert (book, chapter, verse, text) rows for one translation."""
    await db.executemany(
        "INSERT OR REPLACE INTO verses (translation, book, chapter, verse, text) VALUES (?, ?, ?, ?, ?)",
        [(translation.upper(), book, chapter, verse, text) for book, chapter, verse, text in rows],
    )
    await db.commit()
    return len(rows)
