"""Test automatic schema bootstrap / dev DB reset logic."""
import os
import sqlite3
from pathlib import Path
from unittest import mock

import pytest

from kana_backend.app.db import check_schema, ensure_schema, Base, REQUIRED_SCHEMA


def _create_stale_gallery_db(path: Path):
    """Create a SQLite DB whose gallery table lacks canvas_id and ocr_text,
    and which has no learning storage table."""
    conn = sqlite3.connect(str(path))
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE committed_characters (
            id INTEGER PRIMARY KEY,
            session_id TEXT NOT NULL,
            character TEXT NOT NULL,
            image_data TEXT,
            created_ts_utc TEXT NOT NULL
        )
    """)

    # Insert a row so we know the DB has data
    cursor.execute(
        "INSERT INTO committed_characters "
        "(session_id, character, created_ts_utc) "
        "VALUES (?, ?, ?)",
        ("session_old", "あ", "2024-01-01T00:00:00Z"),
    )

    conn.commit()
    conn.close()


def _create_gallery_only_db(path: Path):
    """Create a SQLite DB with a complete gallery table but no storage_items."""
    conn = sqlite3.connect(str(path))
    conn.execute("""
        CREATE TABLE committed_characters (
            id INTEGER PRIMARY KEY,
            canvas_id TEXT,
            session_id TEXT NOT NULL,
            character TEXT NOT NULL,
            image_data TEXT,
            ocr_text TEXT,
            created_ts_utc TEXT NOT NULL
        )
    """)
    conn.commit()
    conn.close()


class TestCheckSchema:
    """Tests for the pure check_schema() function."""

    def test_detects_missing_columns_on_stale_db(self, tmp_path):
        db_path = tmp_path / "old.db"
        _create_stale_gallery_db(db_path)

        missing = check_schema(db_path)

        assert "committed_characters" in missing
        assert "canvas_id" in missing["committed_characters"]
        assert "ocr_text" in missing["committed_characters"]
        assert "character" not in missing["committed_characters"]

        # storage_items doesn't exist at all
        assert missing["storage_items"] == REQUIRED_SCHEMA["storage_items"]

    def test_returns_empty_for_up_to_date_db(self, tmp_path):
        """A freshly-created DB (via create_all) should pass the check."""
        db_path = tmp_path / "fresh.db"
        fresh_engine = _make_engine(f"sqlite:///{db_path}")
        Base.metadata.create_all(bind=fresh_engine)
        fresh_engine.dispose()

        missing = check_schema(db_path)
        assert missing == {}

    def test_detects_missing_table(self, tmp_path):
        """A DB with no tables at all should report everything missing."""
        db_path = tmp_path / "empty.db"
        conn = sqlite3.connect(str(db_path))
        conn.close()

        missing = check_schema(db_path)
        for table in REQUIRED_SCHEMA:
            assert table in missing


class TestEnsureSchema:
    """Tests for the ensure_schema() startup logic."""

    def test_dev_reset_backs_up_and_recreates(self, tmp_path):
        """ALLOW_DEV_DB_RESET=1 should back up the stale DB and create a
        fresh one that passes schema checks."""
        db_path = tmp_path / "kana_learning.db"
        _create_stale_gallery_db(db_path)

        db_url = f"sqlite:///{db_path}"

        with mock.patch("kana_backend.app.db.DATABASE_URL", db_url), \
             mock.patch("kana_backend.app.db.engine", _make_engine(db_url)), \
             mock.patch.dict(os.environ, {"ALLOW_DEV_DB_RESET": "1"}):
            ensure_schema()

        bak_files = list(tmp_path.glob("kana_learning.db.bak-*"))
        assert len(bak_files) == 1

        assert db_path.exists()
        assert check_schema(db_path) == {}

        # Backup should still have the old gallery
        conn = sqlite3.connect(str(bak_files[0]))
        cursor = conn.cursor()
        cursor.execute("SELECT session_id FROM committed_characters")
        rows = cursor.fetchall()
        conn.close()
        assert ("session_old",) in rows

    def test_no_reset_raises_clear_error(self, tmp_path):
        """Without ALLOW_DEV_DB_RESET, ensure_schema must raise RuntimeError
        listing the missing columns and how to recover."""
        db_path = tmp_path / "kana_learning.db"
        _create_stale_gallery_db(db_path)

        db_url = f"sqlite:///{db_path}"

        with mock.patch("kana_backend.app.db.DATABASE_URL", db_url), \
             mock.patch("kana_backend.app.db.engine", _make_engine(db_url)), \
             mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop("ALLOW_DEV_DB_RESET", None)
            with pytest.raises(RuntimeError) as exc_info:
                ensure_schema()

        msg = str(exc_info.value)
        assert "canvas_id" in msg
        assert "ocr_text" in msg
        assert "ALLOW_DEV_DB_RESET=1" in msg

        # Nothing was moved aside
        assert not list(tmp_path.glob("kana_learning.db.bak-*"))

    def test_missing_tables_are_added_in_place(self, tmp_path):
        """A DB that only lacks whole tables is completed without a reset."""
        db_path = tmp_path / "kana_learning.db"
        _create_gallery_only_db(db_path)

        db_url = f"sqlite:///{db_path}"
        eng = _make_engine(db_url)

        with mock.patch("kana_backend.app.db.DATABASE_URL", db_url), \
             mock.patch("kana_backend.app.db.engine", eng):
            ensure_schema()
        eng.dispose()

        assert check_schema(db_path) == {}
        assert not list(tmp_path.glob("kana_learning.db.bak-*"))

    def test_fresh_db_creates_cleanly(self, tmp_path):
        """If the DB file doesn't exist, ensure_schema creates it."""
        db_path = tmp_path / "kana_learning.db"
        assert not db_path.exists()

        db_url = f"sqlite:///{db_path}"

        with mock.patch("kana_backend.app.db.DATABASE_URL", db_url), \
             mock.patch("kana_backend.app.db.engine", _make_engine(db_url)):
            ensure_schema()

        assert db_path.exists()
        assert check_schema(db_path) == {}

    def test_in_memory_always_works(self):
        """In-memory DBs (test path) should always succeed."""
        db_url = "sqlite:///:memory:"
        eng = _make_engine(db_url)

        with mock.patch("kana_backend.app.db.DATABASE_URL", db_url), \
             mock.patch("kana_backend.app.db.engine", eng):
            # Should not raise
            ensure_schema()

        eng.dispose()


def _make_engine(db_url: str):
    """Helper to create a disposable engine for testing."""
    from sqlalchemy import create_engine as ce
    return ce(db_url, connect_args={"check_same_thread": False})
