from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import secrets
import sqlite3
import threading
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from smarthr.core.config import settings

logger = logging.getLogger(__name__)

SCREENINGS = "screenings"

_CLOSED = object()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def collection_path(category: str) -> str:
    return f"artifacts/{settings.app_id}/public/data/{category}"


class RecordStore:
    """Append-only ordered collections with live full-snapshot subscriptions.

    Blocking sqlite work runs in a worker thread; subscriber fan-out happens
    on the event loop that performed the append.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()
        self._subscribers: dict[str, set[Subscription]] = {}
        self._versions: dict[str, int] = {}

    def _get_connection(self) -> sqlite3.Connection:
        with self._conn_lock:
            if self._conn is not None:
                return self._conn

            directory = os.path.dirname(self._db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            self._conn = sqlite3.connect(
                self._db_path,
                check_same_thread=False,
                timeout=5,
                isolation_level=None,
            )
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn.execute("PRAGMA busy_timeout=5000;")
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    collection TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    payload_json TEXT NOT NULL
                );
                """
            )
            self._conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_records_collection_created
                ON records (collection, created_at, seq);
                """
            )
            return self._conn

    def _insert(self, path: str, record: dict[str, Any]) -> str:
        conn = self._get_connection()
        record_id = secrets.token_urlsafe(12)
        payload = {k: v for k, v in record.items() if k not in {"id", "created_at"}}
        with self._conn_lock:
            conn.execute(
                """
                INSERT INTO records (id, collection, created_at, payload_json)
                VALUES (?, ?, ?, ?)
                """,
                (
                    record_id,
                    path,
                    _utc_now().isoformat(),
                    json.dumps(payload, ensure_ascii=False, default=str),
                ),
            )
        return record_id

    def _select(self, path: str) -> list[dict[str, Any]]:
        conn = self._get_connection()
        with self._conn_lock:
            cur = conn.execute(
                """
                SELECT id, created_at, payload_json
                FROM records
                WHERE collection = ?
                ORDER BY created_at ASC, seq ASC
                """,
                (path,),
            )
            rows = cur.fetchall()

        records: list[dict[str, Any]] = []
        for row in rows:
            payload = json.loads(row[2]) if row[2] else {}
            records.append({**payload, "id": row[0], "created_at": datetime.fromisoformat(row[1])})
        return records

    async def append(self, path: str, record: dict[str, Any]) -> str:
        record_id = await asyncio.to_thread(self._insert, path, record)
        version = self._versions.get(path, 0) + 1
        self._versions[path] = version
        if self._subscribers.get(path):
            snapshot = await self.snapshot(path)
            for subscription in list(self._subscribers.get(path, ())):
                subscription.deliver(version, snapshot)
        return record_id

    async def snapshot(self, path: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._select, path)

    def subscribe(self, path: str) -> Subscription:
        return Subscription(self, path)

    def _attach(self, subscription: Subscription) -> None:
        self._subscribers.setdefault(subscription.path, set()).add(subscription)

    def _detach(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.path)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.path]

    def subscriber_count(self, path: str) -> int:
        return len(self._subscribers.get(path, ()))

    def close(self) -> None:
        with self._conn_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


class Subscription:
    """Scoped live view of one collection.

    Use as ``async with store.subscribe(path) as sub: async for snapshot in sub``.
    The first snapshot is the collection as it stood on entry. A one-slot
    mailbox keeps only the newest undelivered snapshot.
    """

    def __init__(self, store: RecordStore, path: str):
        self._store = store
        self.path = path
        self._mailbox: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._last_version = -1
        self._closed = False

    async def __aenter__(self) -> Subscription:
        version = self._store._versions.get(self.path, 0)
        self._store._attach(self)
        try:
            snapshot = await self._store.snapshot(self.path)
        except BaseException:
            self.close()
            raise
        self.deliver(version, snapshot)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def deliver(self, version: int, snapshot: list[dict[str, Any]]) -> None:
        if self._closed or version < self._last_version:
            return
        self._last_version = version
        self._put(snapshot)

    def _put(self, item: Any) -> None:
        with contextlib.suppress(asyncio.QueueEmpty):
            self._mailbox.get_nowait()
        self._mailbox.put_nowait(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._detach(self)
        self._put(_CLOSED)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> list[dict[str, Any]]:
        item = await self._mailbox.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class RecordView:
    """Locally cached copy of a collection, replaced wholesale on each update."""

    def __init__(self, store: RecordStore, path: str):
        self._store = store
        self.path = path
        self.records: list[dict[str, Any]] = []
        self._subscription: Subscription | None = None
        self._task: asyncio.Task | None = None
        self._ready = asyncio.Event()

    def apply(self, snapshot: list[dict[str, Any]]) -> None:
        self.records = list(snapshot)
        self._ready.set()

    async def _follow(self, subscription: Subscription) -> None:
        async for snapshot in subscription:
            self.apply(snapshot)

    async def __aenter__(self) -> RecordView:
        self._subscription = await self._store.subscribe(self.path).__aenter__()
        self._task = asyncio.create_task(self._follow(self._subscription))
        await self._ready.wait()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None


@lru_cache(maxsize=1)
def get_record_store() -> RecordStore:
    return RecordStore(settings.record_store_db_path)
