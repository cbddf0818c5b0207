"""
Local project cache backed by SQLite.

Projects are replaced wholesale on every sync; a generic key-value table keeps
bookkeeping entries such as the last-modified timestamp.
"""

import json
import sqlite3
import time
from pathlib import Path
from typing import Any

from core.config import DB_PATH, LAST_MODIFIED_KEY
from core.database import connect, create_schema
from core.logging_config import get_logger
from models.gripp import Project
from services.normalizer import normalize_project, serialize_project

logger = get_logger(__name__)

PROJECT_COLUMNS = (
    "id",
    "number",
    "name",
    "color",
    "archived",
    "totalexclvat",
    "totalinclvat",
    "company",
    "phase",
    "tags",
    "deadline",
    "startdate",
    "deliverydate",
    "enddate",
    "updatedon",
    "employees_starred",
    "projectlines",
)

_INSERT_SQL = (
    f"INSERT INTO projects ({', '.join(PROJECT_COLUMNS)}, extra) "
    f"VALUES ({', '.join('?' for _ in PROJECT_COLUMNS)}, ?)"
)
_UPSERT_SQL = _INSERT_SQL.replace("INSERT INTO", "INSERT OR REPLACE INTO", 1)


class CacheStoreError(Exception):
    """A cache write failed and was rolled back."""


def _now_ms() -> int:
    return int(time.time() * 1000)


def _row_values(record: dict) -> tuple:
    if record.get("id") is None:
        raise CacheStoreError("Project record without id")
    serialized = serialize_project(record)
    values = [serialized.get(column) for column in PROJECT_COLUMNS]
    archived_index = PROJECT_COLUMNS.index("archived")
    values[archived_index] = int(bool(values[archived_index]))
    extra = {k: v for k, v in record.items() if k not in PROJECT_COLUMNS}
    return (*values, json.dumps(extra) if extra else None)


def _row_to_record(row: sqlite3.Row) -> dict:
    record = {column: row[column] for column in PROJECT_COLUMNS}
    record["archived"] = bool(record["archived"])
    if row["extra"]:
        try:
            record.update(json.loads(row["extra"]))
        except ValueError:
            logger.warning("project_extra_invalid", project_id=row["id"])
    return record


class ProjectCache:
    """
    Project collection plus key-value cache entries.

    Expects a single writer at a time; SQLite transactions are the only
    locking.
    """

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = Path(db_path or DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with connect(self.db_path) as conn:
            create_schema(conn)

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    def get_all(self) -> list[Project]:
        """Return every cached project, normalized."""
        with connect(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM projects ORDER BY id").fetchall()
        projects = [normalize_project(_row_to_record(row)) for row in rows]
        logger.debug("cache_projects_loaded", count=len(projects))
        return projects

    def get(self, project_id: int) -> Project | None:
        with connect(self.db_path) as conn:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return normalize_project(_row_to_record(row)) if row else None

    def ids(self) -> set[int]:
        with connect(self.db_path) as conn:
            return {row["id"] for row in conn.execute("SELECT id FROM projects")}

    def save_all(self, records: list[dict], clear_entries: bool = False) -> None:
        """
        Replace the whole collection in one transaction.

        Args:
            records: Projects to store.
            clear_entries: Also drop the key-value entries, within the same
                transaction.

        Raises:
            CacheStoreError: if any insert fails; the previous contents are kept.
        """
        with connect(self.db_path) as conn:
            try:
                with conn:
                    if clear_entries:
                        conn.execute("DELETE FROM cache")
                    conn.execute("DELETE FROM projects")
                    for record in records:
                        conn.execute(_INSERT_SQL, _row_values(record))
                    self._set_item(conn, LAST_MODIFIED_KEY, {"timestamp": _now_ms()})
            except (sqlite3.Error, CacheStoreError) as e:
                logger.error("cache_save_all_failed", count=len(records), error=str(e))
                raise CacheStoreError(f"Saving {len(records)} projects failed: {e}") from e
        logger.info("cache_projects_saved", count=len(records))

    def save_one(self, record: dict) -> None:
        """Insert or replace a single project by id."""
        with connect(self.db_path) as conn:
            try:
                with conn:
                    conn.execute(_UPSERT_SQL, _row_values(record))
                    self._set_item(conn, LAST_MODIFIED_KEY, {"timestamp": _now_ms()})
            except (sqlite3.Error, CacheStoreError) as e:
                logger.error("cache_save_one_failed", project_id=record.get("id"), error=str(e))
                raise CacheStoreError(f"Saving project {record.get('id')} failed: {e}") from e

    def clear(self) -> None:
        with connect(self.db_path) as conn:
            with conn:
                conn.execute("DELETE FROM projects")
        logger.info("cache_projects_cleared")

    # -------------------------------------------------------------------------
    # Key-value entries
    # -------------------------------------------------------------------------

    @staticmethod
    def _set_item(conn: sqlite3.Connection, key: str, value: Any) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO cache (key, value, timestamp) VALUES (?, ?, ?)",
            (key, json.dumps(value), _now_ms()),
        )

    def set_item(self, key: str, value: Any) -> None:
        with connect(self.db_path) as conn:
            with conn:
                self._set_item(conn, key, value)

    def get_entry(self, key: str) -> tuple[Any, int] | None:
        """Return (value, timestamp in ms) or None."""
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value, timestamp FROM cache WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["value"]), row["timestamp"]

    def get_item(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return entry[0] if entry else None

    def is_stale(self, key: str, max_age: float) -> bool:
        """True when the entry is missing or older than max_age seconds."""
        entry = self.get_entry(key)
        if entry is None:
            return True
        return (_now_ms() - entry[1]) > max_age * 1000

    def get_last_modified(self) -> int | None:
        value = self.get_item(LAST_MODIFIED_KEY)
        return value.get("timestamp") if isinstance(value, dict) else None

    def clear_cache(self) -> None:
        with connect(self.db_path) as conn:
            with conn:
                conn.execute("DELETE FROM cache")

    def clear_database(self) -> None:
        with connect(self.db_path) as conn:
            with conn:
                conn.execute("DELETE FROM projects")
                conn.execute("DELETE FROM cache")
        logger.info("cache_database_cleared")
