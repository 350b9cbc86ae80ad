"""Event log - the append-only source of truth the game index is folded from."""

import asyncio
import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Protocol

from chessdb.contracts.events import LogEntry


class LogSource(Protocol):
    """What the index store needs from a log.

    Implementations raise ``OSError``/``sqlite3.Error`` (or
    ``SourceUnavailable``) when the log cannot be read, and ``ValueError``
    when a stored entry cannot be decoded.
    """

    def read_since(self, seq: int, limit: int | None = None) -> list[LogEntry]:
        """Entries with a position greater than ``seq``, in log order."""
        ...

    def last_seq(self) -> int:
        """Position of the newest entry (0 when empty)."""
        ...

    async def wait_for_append(self, after_seq: int) -> int:
        """Suspend until the log holds an entry past ``after_seq``."""
        ...


class EventLog:
    """Single-writer append-only log backed by SQLite.

    Thread Safety:
    - Single writer assumed, appending from the event loop thread
    - Multiple readers supported via separate connections

    Invariants:
    - seq is assigned by the log and strictly increases
    - Entries are never deleted or modified
    - Entry keys are unique
    """

    def __init__(self, db_path: Path | str, poll_interval: float = 1.0):
        """Initialize event log.

        Args:
            db_path: Path to SQLite database file
            poll_interval: Seconds between checks for entries appended by
                other processes while waiting on the live tail
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.poll_interval = poll_interval

        # Wakes live-tail waiters on the next append
        self._appended: asyncio.Event | None = None

        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS entries (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    key TEXT NOT NULL UNIQUE,
                    author TEXT NOT NULL,
                    ts_wall TEXT NOT NULL,
                    content_json TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_entries_author
                    ON entries(author);
            """)

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with automatic commit/rollback."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def new_key() -> str:
        return f"%{uuid.uuid4().hex}.sha256"

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> LogEntry:
        return LogEntry(
            key=row["key"],
            seq=row["seq"],
            author=row["author"],
            timestamp=datetime.fromisoformat(row["ts_wall"]),
            content=json.loads(row["content_json"]),
        )

    def _insert(
        self,
        conn: sqlite3.Connection,
        author: str,
        content: Any,
        key: str | None,
        timestamp: datetime | None,
    ) -> LogEntry:
        key = key or self.new_key()
        timestamp = timestamp or datetime.now(timezone.utc)
        cursor = conn.execute(
            """
            INSERT INTO entries (key, author, ts_wall, content_json)
            VALUES (?, ?, ?, ?)
            """,
            (key, author, timestamp.isoformat(), json.dumps(content)),
        )
        return LogEntry(
            key=key,
            seq=cursor.lastrowid,
            author=author,
            timestamp=timestamp,
            content=content,
        )

    def append(
        self,
        author: str,
        content: Any,
        key: str | None = None,
        timestamp: datetime | None = None,
    ) -> LogEntry:
        """Append an entry to the log.

        Args:
            author: Identifier of the writing player
            content: JSON-serializable payload
            key: Entry key; generated when omitted

        Returns:
            The stored entry with its assigned seq
        """
        with self._conn() as conn:
            entry = self._insert(conn, author, content, key, timestamp)
        self._notify()
        return entry

    def append_batch(self, items: list[dict[str, Any]]) -> list[LogEntry]:
        """Append several entries in a single transaction.

        Each item holds ``author`` and ``content`` and optionally ``key``.
        """
        with self._conn() as conn:
            entries = [
                self._insert(conn, item["author"], item.get("content"), item.get("key"), None)
                for item in items
            ]
        if entries:
            self._notify()
        return entries

    # ─────────────────────────────────────────────────────────────────────
    # Query Methods
    # ─────────────────────────────────────────────────────────────────────

    def read_since(self, seq: int, limit: int | None = None) -> list[LogEntry]:
        """Read entries after position ``seq`` in log order."""
        with self._conn() as conn:
            cursor = conn.execute(
                """
                SELECT seq, key, author, ts_wall, content_json
                FROM entries
                WHERE seq > ?
                ORDER BY seq
                LIMIT ?
                """,
                (seq, -1 if limit is None else limit),
            )
            return [self._row_to_entry(row) for row in cursor]

    def replay(self) -> Iterator[LogEntry]:
        """Replay the whole log.

        Yields:
            Entries in seq order
        """
        with self._conn() as conn:
            cursor = conn.execute(
                """
                SELECT seq, key, author, ts_wall, content_json
                FROM entries
                ORDER BY seq
                """
            )
            for row in cursor:
                yield self._row_to_entry(row)

    def get(self, key: str) -> LogEntry | None:
        """Get an entry by key."""
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT seq, key, author, ts_wall, content_json
                FROM entries WHERE key = ?
                """,
                (key,),
            ).fetchone()
            return self._row_to_entry(row) if row else None

    def last_seq(self) -> int:
        """Get the position of the newest entry."""
        with self._conn() as conn:
            row = conn.execute("SELECT MAX(seq) FROM entries").fetchone()
            return row[0] if row[0] is not None else 0

    def count_entries(self, author: str | None = None) -> int:
        """Count entries, optionally filtered by author."""
        with self._conn() as conn:
            if author:
                cursor = conn.execute(
                    "SELECT COUNT(*) FROM entries WHERE author = ?", (author,)
                )
            else:
                cursor = conn.execute("SELECT COUNT(*) FROM entries")
            return cursor.fetchone()[0]

    # ─────────────────────────────────────────────────────────────────────
    # Live Tail
    # ─────────────────────────────────────────────────────────────────────

    def _notify(self) -> None:
        if self._appended is not None:
            self._appended.set()
            self._appended = None

    async def wait_for_append(self, after_seq: int) -> int:
        """Wait until the log holds an entry past ``after_seq``.

        Returns:
            The newest seq once it exceeds ``after_seq``
        """
        while True:
            if self._appended is None:
                self._appended = asyncio.Event()
            appended = self._appended

            current = await asyncio.to_thread(self.last_seq)
            if current > after_seq:
                return current

            try:
                await asyncio.wait_for(appended.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                continue
