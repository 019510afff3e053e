"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test for isolation.
"""
import pytest
import sqlite3
import sys
import os
import uuid
from zoneinfo import ZoneInfo

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database

MANILA = ZoneInfo("Asia/Manila")


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE events (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            title TEXT NOT NULL,
            start_at TEXT NOT NULL,
            end_at TEXT NOT NULL,
            importance TEXT NOT NULL DEFAULT 'low',
            urgency TEXT NOT NULL DEFAULT 'low',
            difficulty TEXT NOT NULL DEFAULT 'medium',
            status TEXT,
            segment_of TEXT,
            segment_index INTEGER,
            is_recurring INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def add_event(test_db):
    """Factory that stores an event for owner u1 (times are Manila wall clock)."""

    def _add(title, start, end, owner_id="u1", importance="low", urgency="low", difficulty="medium", **extra):
        return database.create_event_db(
            str(uuid.uuid4()), owner_id, title, start, end, importance, urgency, difficulty, **extra
        )

    return _add


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Mocks init_db to skip alembic migrations.
    """
    from fastapi.testclient import TestClient
    import main

    # main imported init_db by name, so patch it there
    monkeypatch.setattr(main, "init_db", lambda: None)

    with TestClient(main.app) as client:
        yield client
