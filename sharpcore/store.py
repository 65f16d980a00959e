"""Async key-value persistence for command units.

Values are JSON-serializable objects. ``SqliteStore`` keeps them in a
single table and runs the blocking sqlite calls in a worker thread;
``MemoryStore`` is the volatile variant used in tests and as a
fallback when the data directory is unusable.
"""

import asyncio
import copy
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import structlog

from .exceptions import StoreError

logger = structlog.get_logger("sharpcore.bot")


class KeyValueStore(Protocol):
    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def close(self) -> None: ...


class MemoryStore:
    """Dict-backed store. Returns copies so callers can't mutate state."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    async def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def close(self) -> None:
        pass


class SqliteStore:
    """sqlite-backed store at ``path``.

    One connection shared across worker threads, serialized by a lock.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), check_same_thread=False)
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv ("
                " key TEXT PRIMARY KEY,"
                " value TEXT NOT NULL)"
            )
            conn.commit()
            self._conn = conn
            logger.info("store_opened", path=str(self.path))
        return self._conn

    def _get_sync(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._connect().execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def _set_sync(self, key: str, raw: str) -> None:
        with self._lock:
            conn = self._connect()
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, raw),
            )
            conn.commit()

    async def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = await asyncio.to_thread(self._get_sync, key)
        except sqlite3.Error as e:
            raise StoreError(str(e), operation="get", key=key) from e
        if raw is None:
            return default
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError(
                f"Value is not JSON-serializable: {e}", operation="set", key=key
            ) from e
        try:
            await asyncio.to_thread(self._set_sync, key, raw)
        except sqlite3.Error as e:
            raise StoreError(str(e), operation="set", key=key) from e

    def _close_sync(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    async def close(self) -> None:
        await asyncio.to_thread(self._close_sync)


def open_store(data_dir: Path) -> KeyValueStore:
    """Open the sqlite store under ``data_dir``, or a memory store on failure."""
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(
            "store_fallback_memory", data_dir=str(data_dir), error=str(e)
        )
        return MemoryStore()
    return SqliteStore(data_dir / "sharpcore.db")
