"""SQLAlchemy engine, session factory and startup schema guard."""
import logging
import os
import shutil
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .settings import DATABASE_URL

logger = logging.getLogger(__name__)

engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Columns the application reads or writes, per table.
REQUIRED_SCHEMA = {
    "storage_items": [
        "key", "value", "updated_ts_utc",
    ],
    "committed_characters": [
        "canvas_id", "session_id", "character", "image_data", "ocr_text",
        "created_ts_utc",
    ],
}


def _sqlite_file() -> Path | None:
    """Path of the SQLite file behind DATABASE_URL, or None for in-memory
    and non-SQLite URLs."""
    prefix = "sqlite:///"
    if not DATABASE_URL.startswith(prefix):
        return None
    raw = DATABASE_URL[len(prefix):]
    if raw in ("", ":memory:"):
        return None
    return Path(raw)


def check_schema(db_path: Path) -> dict[str, list[str]]:
    """Map each table in REQUIRED_SCHEMA to the columns it lacks.

    A table that does not exist lists every required column. An empty dict
    means the file matches the models.
    """
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row[0] for row in cursor.fetchall()}

        missing: dict[str, list[str]] = {}
        for table, required in REQUIRED_SCHEMA.items():
            if table not in tables:
                missing[table] = list(required)
                continue
            cursor.execute(f"PRAGMA table_info({table})")
            present = {row[1] for row in cursor.fetchall()}
            absent = [column for column in required if column not in present]
            if absent:
                missing[table] = absent
    finally:
        conn.close()

    return missing


def _backup_and_recreate(db_path: Path) -> None:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    backup_path = db_path.with_suffix(f".db.bak-{stamp}")
    engine.dispose()
    shutil.move(str(db_path), str(backup_path))
    logger.warning("Stale schema in %s, moved to %s", db_path, backup_path)
    Base.metadata.create_all(bind=engine)
    logger.info("Recreated database at %s", db_path)


def ensure_schema():
    """Create missing tables at startup and refuse to run on stale columns.

    Tables that do not exist yet are always created. If an existing table
    lacks columns, ALLOW_DEV_DB_RESET=1 moves the file aside to
    ``<name>.db.bak-<timestamp>`` and starts fresh; otherwise a RuntimeError
    lists what is missing. Non-file databases only get ``create_all``.
    """
    from . import models  # noqa: F401  (registers the tables on Base)

    db_path = _sqlite_file()
    is_new = db_path is not None and not db_path.exists()

    Base.metadata.create_all(bind=engine)

    if db_path is None:
        return
    if is_new:
        logger.info("Created new database at %s", db_path)
        return

    missing = check_schema(db_path)
    if not missing:
        return

    if os.getenv("ALLOW_DEV_DB_RESET", "") == "1":
        _backup_and_recreate(db_path)
        return

    details = "\n".join(
        f"  {table}: {', '.join(columns)}" for table, columns in sorted(missing.items())
    )
    raise RuntimeError(
        f"Database {db_path} does not match the current models.  Missing columns:\n"
        f"{details}\n\n"
        "Set ALLOW_DEV_DB_RESET=1 to back it up and recreate it, or point "
        "DATABASE_URL at a new file."
    )


def get_db():
    """Dependency that provides a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
