"""SQLite request logging for API."""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from core.config import DB_PATH
from core.database import connect


@dataclass
class RequestLog:
    """Captured request/response data for logging."""

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    started: float = field(default_factory=time.time, repr=False)
    endpoint: str = ""
    method: str = ""
    client_ip: str | None = None
    status_code: int = 0
    error_code: str | None = None
    error_message: str | None = None
    processing_time_ms: int = 0
    records_synced: int | None = None

    def finish(self, status_code: int, error_code: str | None = None, error_message: str | None = None) -> None:
        self.status_code = status_code
        self.error_code = error_code
        self.error_message = error_message
        self.processing_time_ms = int((time.time() - self.started) * 1000)


def log_request(log: RequestLog, db_path: Path | str | None = None) -> None:
    """Write request log to SQLite database."""
    with connect(db_path or DB_PATH) as conn:
        conn.execute(
            """
            INSERT INTO api_requests (
                request_id, timestamp, endpoint, method, client_ip,
                status_code, error_code, error_message, processing_time_ms,
                records_synced
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                log.request_id,
                log.timestamp,
                log.endpoint,
                log.method,
                log.client_ip,
                log.status_code,
                log.error_code,
                log.error_message,
                log.processing_time_ms,
                log.records_synced,
            ),
        )
        conn.commit()
