"""Caches: persistent SQLite sender cache, in-flight de-duplication, AI results."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Awaitable, Callable, Generic, TypeVar

from . import constants
from .models import AiResult, SenderInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS sender_info (
    email TEXT PRIMARY KEY,
    data_json TEXT NOT NULL,
    timestamp INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


class SenderCache:
    """Persistent SQLite cache of SenderInfo keyed by sender address.

    Entries older than the TTL are evicted lazily on read.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        ttl_ms: int | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.db_path = Path(db_path or constants.CACHE_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ttl_ms = constants.SENDER_CACHE_TTL_MS if ttl_ms is None else ttl_ms
        self._clock = clock
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript(_CREATE_TABLES_SQL)

    # --- public API ---

    def get(self, email: str) -> SenderInfo | None:
        """Return the cached SenderInfo for ``email``, or None if missing or expired."""
        row = self._conn.execute(
            "SELECT data_json, timestamp FROM sender_info WHERE email = ?", (email,)
        ).fetchone()
        if row is None:
            return None

        if self._clock() - row["timestamp"] > self.ttl_ms:
            with self._conn:
                self._conn.execute("DELETE FROM sender_info WHERE email = ?", (email,))
            return None

        return SenderInfo.from_dict(json.loads(row["data_json"]))

    def set(self, email: str, info: SenderInfo) -> None:
        """Store ``info`` for ``email``. Storage failures are logged, not raised."""
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO sender_info (email, data_json, timestamp) "
                    "VALUES (?, ?, ?)",
                    (email, json.dumps(info.to_dict()), self._clock()),
                )
        except sqlite3.Error as exc:
            logger.warning("Could not cache sender info for %s: %s", email, exc)

    def clear(self) -> None:
        """Drop all cached senders (the install marker is kept)."""
        with self._conn:
            self._conn.execute("DELETE FROM sender_info")

    def installed_version(self) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM meta WHERE key = 'installed_version'"
        ).fetchone()
        return row["value"] if row else None

    def mark_installed(self, version: str) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES ('installed_version', ?)",
                (version,),
            )

    def get_info(self) -> dict:
        """Return cache statistics."""
        file_size = self.db_path.stat().st_size if self.db_path.exists() else 0
        sender_count = self._conn.execute(
            "SELECT COUNT(*) AS c FROM sender_info"
        ).fetchone()["c"]
        newest = self._conn.execute("SELECT MAX(timestamp) AS t FROM sender_info").fetchone()["t"]
        expired = self._conn.execute(
            "SELECT COUNT(*) AS c FROM sender_info WHERE ? - timestamp > ?",
            (self._clock(), self.ttl_ms),
        ).fetchone()["c"]

        return {
            "db_file_size": file_size,
            "sender_count": sender_count,
            "expired_count": expired,
            "newest_timestamp": newest,
            "installed_version": self.installed_version(),
        }

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self) -> SenderCache:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()


class PendingRequests(Generic[T]):
    """Shares one in-flight task per key between concurrent callers.

    The first caller starts the work; callers arriving while it runs await
    the same task and get the same result. The key is released once the task
    settles, so the next call after that starts fresh.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda _t, k=key: self._release(k, _t))
        # A cancelled caller must not cancel the work the others wait on
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[T]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]


class AiResultCache:
    """In-memory AiResult cache keyed by message identity. Lives as long as the process."""

    def __init__(self) -> None:
        self._results: dict[str, AiResult] = {}

    @staticmethod
    def key_for(message_id: str | None, sender_email: str, subject: str) -> str:
        if message_id:
            return f"ai:{message_id}"
        return f"ai:{sender_email}:{(subject or '')[:constants.AI_CACHE_SUBJECT_PREFIX]}"

    def get(self, key: str) -> AiResult | None:
        return self._results.get(key)

    def set(self, key: str, result: AiResult) -> None:
        self._results[key] = result

    def discard(self, key: str) -> None:
        self._results.pop(key, None)

    def clear(self) -> None:
        self._results.clear()

    def __len__(self) -> int:
        return len(self._results)
