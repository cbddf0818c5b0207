"""
SQLite database setup and sync-status bookkeeping.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from core.config import DB_PATH

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS projects (
        id INTEGER PRIMARY KEY,
        number INTEGER,
        name TEXT,
        color TEXT,
        archived INTEGER DEFAULT 0,
        totalexclvat TEXT,
        totalinclvat TEXT,
        company TEXT,
        phase TEXT,
        tags TEXT,
        deadline TEXT,
        startdate TEXT,
        deliverydate TEXT,
        enddate TEXT,
        updatedon TEXT,
        employees_starred TEXT,
        projectlines TEXT,
        extra TEXT,
        synced_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cache (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        timestamp INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sync_status (
        endpoint TEXT PRIMARY KEY,
        last_sync TEXT,
        status TEXT CHECK(status IN ('success', 'error')),
        error TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS api_requests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        request_id TEXT UNIQUE NOT NULL,
        timestamp TEXT NOT NULL,
        endpoint TEXT NOT NULL,
        method TEXT NOT NULL,
        client_ip TEXT,
        status_code INTEGER NOT NULL,
        error_code TEXT,
        error_message TEXT,
        processing_time_ms INTEGER NOT NULL,
        records_synced INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_cache_timestamp ON cache(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_api_requests_timestamp ON api_requests(timestamp)",
]


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """Get a database connection with dict-like rows."""
    conn = sqlite3.connect(db_path or DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def connect(db_path: Path | str | None = None) -> Iterator[sqlite3.Connection]:
    """Open a connection and always close it."""
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they don't exist."""
    for statement in SCHEMA:
        conn.execute(statement)
    conn.commit()


def init_database(db_path: Path | str | None = None) -> Path:
    """Create the database file, its directory and the schema."""
    path = Path(db_path or DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    with connect(path) as conn:
        create_schema(conn)
    return path


def record_sync_status(
    conn: sqlite3.Connection, endpoint: str, status: str, error: str | None = None
) -> str:
    """Store the outcome of a sync for an endpoint. Returns the sync timestamp."""
    last_sync = datetime.now(timezone.utc).isoformat()
    conn.execute(
        """
        INSERT INTO sync_status (endpoint, last_sync, status, error)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(endpoint) DO UPDATE SET
            last_sync = excluded.last_sync,
            status = excluded.status,
            error = excluded.error
        """,
        (endpoint, last_sync, status, error),
    )
    conn.commit()
    return last_sync


def get_sync_status(conn: sqlite3.Connection, endpoint: str) -> dict | None:
    row = conn.execute(
        "SELECT endpoint, last_sync, status, error FROM sync_status WHERE endpoint = ?",
        (endpoint,),
    ).fetchone()
    return dict(row) if row else None


def list_sync_status(conn: sqlite3.Connection) -> list[dict]:
    rows = conn.execute(
        "SELECT endpoint, last_sync, status, error FROM sync_status ORDER BY endpoint"
    ).fetchall()
    return [dict(row) for row in rows]
