"""Request accounting backed by SQLite.

One row per place lookup; used only for the aggregate figures served by
``/stats``. Writes never fail a request: errors are logged and dropped.
"""

import asyncio
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DAY_MS = 24 * 3600 * 1000

DEFAULT_WINDOWS: dict[str, int] = {
    "3_days": 3 * DAY_MS,
    "7_days": 7 * DAY_MS,
    "30_days": 30 * DAY_MS,
    "365_days": 365 * DAY_MS,
}

SCHEMA = """
CREATE TABLE IF NOT EXISTS request_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp INTEGER NOT NULL,
    place_id TEXT,
    tenant_key TEXT,
    cache_hit INTEGER,
    status_code INTEGER,
    forwarded INTEGER,
    error TEXT
)
"""

AGGREGATE_QUERY = """
SELECT
    COUNT(*),
    COALESCE(SUM(cache_hit), 0),
    COALESCE(SUM(1 - cache_hit), 0),
    COALESCE(SUM(forwarded), 0),
    COALESCE(SUM(CASE WHEN status_code >= 400 THEN 1 ELSE 0 END), 0)
FROM request_logs WHERE timestamp > ?
"""


@dataclass
class RequestLogEntry:
    """One handled lookup."""

    timestamp: int
    item_id: Optional[str]
    tenant_key: Optional[str]
    cache_hit: bool
    status_code: int
    forwarded: bool
    error: Optional[str] = None


@dataclass
class RequestAggregate:
    """Counts over a time window."""

    total: int = 0
    hits: int = 0
    misses: int = 0
    forwarded: int = 0
    errors: int = 0


class SQLiteRequestLog:
    """Request log stored in a SQLite file.

    The connection is shared across worker threads and guarded by a lock;
    every call runs off the event loop via ``asyncio.to_thread``.
    """

    def __init__(self, db_file: str = "logs.sqlite") -> None:
        self._db_file = db_file
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    async def initialize(self) -> None:
        logger.info(f"[STATS] Loading database from {self._db_file}")
        await asyncio.to_thread(self._open)

    def _open(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(self._db_file, check_same_thread=False)
                self._conn.execute(SCHEMA)
                self._conn.commit()
            return self._conn

    async def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    async def record(self, entry: RequestLogEntry) -> None:
        """Append one entry. Failures are logged, never raised."""
        try:
            await asyncio.to_thread(self._insert, entry)
        except sqlite3.Error:
            logger.exception("[STATS] Failed to log request")

    def _insert(self, entry: RequestLogEntry) -> None:
        conn = self._open()
        with self._lock:
            conn.execute(
                "INSERT INTO request_logs (timestamp, place_id, tenant_key, cache_hit, "
                "status_code, forwarded, error) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.timestamp,
                    entry.item_id,
                    entry.tenant_key,
                    int(entry.cache_hit),
                    entry.status_code,
                    int(entry.forwarded),
                    entry.error,
                ),
            )
            conn.commit()

    async def query_aggregates(
        self,
        windows: dict[str, int] | None = None,
        now_ms: int | None = None,
    ) -> dict[str, RequestAggregate]:
        """Aggregate counts for each window.

        Args:
            windows: Label -> window length in milliseconds.
            now_ms: End of every window (defaults to the current time).

        Returns:
            Label -> counts of requests newer than ``now_ms - window``.
        """
        windows = windows or DEFAULT_WINDOWS
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        return await asyncio.to_thread(self._aggregate, windows, now_ms)

    def _aggregate(self, windows: dict[str, int], now_ms: int) -> dict[str, RequestAggregate]:
        conn = self._open()
        stats: dict[str, RequestAggregate] = {}
        with self._lock:
            for label, window_ms in windows.items():
                row = conn.execute(AGGREGATE_QUERY, (now_ms - window_ms,)).fetchone()
                stats[label] = RequestAggregate(*row)
        return stats
