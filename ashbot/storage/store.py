"""
SQLite message store for ashbot.

Two databases:
- messages: every observed room message plus the links found in it
- meta: key/value pairs (sync token, login credentials)

The sqlite3 connections are blocking; async callers go through
asyncio.to_thread so the event loop never waits on disk I/O.
"""

import asyncio
import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from ashbot.channels.base import IncomingMessage
from ashbot.config.schema import RoomConfig

MESSAGES_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    room_id TEXT NOT NULL,
    sender TEXT NOT NULL,
    ts_ms INTEGER NOT NULL,
    body TEXT,
    msgtype TEXT,
    raw_json TEXT
);
CREATE INDEX IF NOT EXISTS idx_messages_room_ts ON messages(room_id, ts_ms);
CREATE TABLE IF NOT EXISTS links (
    message_id TEXT NOT NULL,
    url TEXT NOT NULL,
    idx INTEGER NOT NULL,
    title TEXT,
    ts_ms INTEGER NOT NULL,
    PRIMARY KEY (message_id, idx)
);
"""

META_SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""


def _connect(path: str, schema: str) -> sqlite3.Connection:
    if path != ":memory:":
        Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    # check_same_thread=False because of to_thread access
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.executescript(schema)
    conn.commit()
    return conn


class MessageStore:
    """
    Persistent store for room messages, links and metadata.

    Writes are serialized by a lock per store; SQLite serializes the
    rest.
    """

    def __init__(self, db_path: str = ":memory:", meta_db_path: str = ":memory:"):
        self.db_path = db_path
        self.meta_db_path = meta_db_path
        self._db: sqlite3.Connection | None = None
        self._meta: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def open(self) -> None:
        """Open both databases and apply their schemas."""
        self._db = _connect(self.db_path, MESSAGES_SCHEMA)
        self._meta = _connect(self.meta_db_path, META_SCHEMA)
        logger.debug(f"Opened message store {self.db_path} (meta {self.meta_db_path})")

    def close(self) -> None:
        """Close both databases."""
        for conn in (self._db, self._meta):
            if conn is not None:
                conn.close()
        self._db = None
        self._meta = None

    @property
    def db(self) -> sqlite3.Connection:
        if self._db is None:
            raise RuntimeError("message store is not open")
        return self._db

    @property
    def meta(self) -> sqlite3.Connection:
        if self._meta is None:
            raise RuntimeError("message store is not open")
        return self._meta

    # Messages

    def _store_message_sync(self, message: IncomingMessage, urls: list[str]) -> None:
        raw_json = json.dumps(message.raw or {})
        with self._lock:
            self.db.execute(
                "INSERT OR IGNORE INTO messages(id, room_id, sender, ts_ms, body, msgtype, raw_json) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    message.event_id,
                    message.room_id,
                    message.sender,
                    message.timestamp_ms,
                    message.body,
                    message.msgtype,
                    raw_json,
                ),
            )
            for idx, url in enumerate(urls):
                self.db.execute(
                    "INSERT OR IGNORE INTO links(message_id, url, idx, title, ts_ms) "
                    "VALUES (?, ?, ?, NULL, ?)",
                    (message.event_id, url, idx, message.timestamp_ms),
                )
            self.db.commit()

    async def store_message(self, message: IncomingMessage, urls: list[str] | None = None) -> None:
        """
        Persist a message and the links extracted from it.

        Re-delivered events are ignored.
        """
        await asyncio.to_thread(self._store_message_sync, message, urls or [])

    def _query_sync(self, sql: str, params: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        with self._lock:
            cursor = self.db.execute(sql, params)
            return cursor.fetchall()

    async def query(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        """Run a read query against the messages database."""
        return await asyncio.to_thread(self._query_sync, sql, params)

    # Meta

    def _get_meta_sync(self, key: str) -> str:
        with self._lock:
            row = self.meta.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return row[0] if row and row[0] is not None else ""

    def _set_meta_sync(self, key: str, value: str) -> None:
        with self._lock:
            self.meta.execute(
                "INSERT INTO meta(key, value) VALUES(?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (key, value),
            )
            self.meta.commit()

    async def get_meta(self, key: str) -> str:
        """Get a metadata value, or "" when unset."""
        return await asyncio.to_thread(self._get_meta_sync, key)

    async def set_meta(self, key: str, value: str) -> None:
        """Insert or update a metadata value."""
        await asyncio.to_thread(self._set_meta_sync, key, value)

    # Link snapshots

    def _export_link_snapshot_sync(self, rooms: list[RoomConfig], path: Path) -> int:
        comments = {room.id: room.comment for room in rooms}
        placeholders = ",".join("?" for _ in rooms)
        rows = self._query_sync(
            "SELECT m.room_id, l.message_id, l.url, l.ts_ms, m.sender "
            "FROM links l JOIN messages m ON m.id = l.message_id "
            f"WHERE m.room_id IN ({placeholders}) "
            "ORDER BY m.room_id, l.ts_ms ASC, l.message_id, l.idx",
            tuple(comments),
        )

        grouped: dict[str, list[dict[str, Any]]] = {}
        for room_id, message_id, url, ts_ms, sender in rows:
            grouped.setdefault(comments.get(room_id, ""), []).append({
                "message_id": message_id,
                "url": url,
                "ts_ms": ts_ms,
                "sender": sender,
            })

        payload = {
            "last_sync": datetime.now(timezone.utc).isoformat(),
            "rooms": grouped,
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        return len(rows)

    async def export_link_snapshot(self, rooms: list[RoomConfig], path: str | Path) -> int:
        """
        Write every link from the given rooms to a JSON snapshot.

        Links are grouped by room comment.

        Returns:
            Number of links written.
        """
        if not rooms:
            return 0
        count = await asyncio.to_thread(self._export_link_snapshot_sync, rooms, Path(path))
        logger.debug(f"Exported {count} links to {path}")
        return count
