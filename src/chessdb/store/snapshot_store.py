"""Snapshot stores - keep the folded index between refreshes and restarts."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Protocol

from chessdb.contracts.games import GameRecord, VersionedSnapshot

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    """Key-value store of named view snapshots."""

    def load(self, name: str) -> VersionedSnapshot | None:
        """Return the stored snapshot for a view, or None."""
        ...

    def save(self, name: str, snapshot: VersionedSnapshot) -> None:
        """Replace the stored snapshot for a view."""
        ...


class MemorySnapshotStore:
    """Process-local snapshot store.

    Snapshots are immutable, so they are kept by reference.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, VersionedSnapshot] = {}

    def load(self, name: str) -> VersionedSnapshot | None:
        return self._snapshots.get(name)

    def save(self, name: str, snapshot: VersionedSnapshot) -> None:
        self._snapshots[name] = snapshot

    def clear(self) -> None:
        self._snapshots.clear()


class SqliteSnapshotStore:
    """Snapshot store persisted to SQLite, one row per view.

    The index is stored as JSON so a restarted process can resume folding
    from the saved log position.
    """

    def __init__(self, db_path: Path | str):
        """Initialize snapshot store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS view_snapshots (
                    name TEXT PRIMARY KEY,
                    schema_version INTEGER NOT NULL,
                    seq INTEGER NOT NULL,
                    index_json TEXT NOT NULL,
                    saved_at TEXT NOT NULL
                );
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

    def load(self, name: str) -> VersionedSnapshot | None:
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT schema_version, seq, index_json
                FROM view_snapshots WHERE name = ?
                """,
                (name,),
            ).fetchone()

        if row is None:
            return None

        records = {
            game_id: GameRecord.model_validate(data)
            for game_id, data in json.loads(row["index_json"]).items()
        }
        logger.debug(f"Loaded snapshot {name} v{row['schema_version']} at seq {row['seq']}")
        return VersionedSnapshot.of(row["schema_version"], row["seq"], records)

    def save(self, name: str, snapshot: VersionedSnapshot) -> None:
        index_json = json.dumps(
            {
                game_id: record.model_dump(mode="json")
                for game_id, record in snapshot.index.items()
            }
        )
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO view_snapshots (name, schema_version, seq, index_json, saved_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    schema_version = excluded.schema_version,
                    seq = excluded.seq,
                    index_json = excluded.index_json,
                    saved_at = excluded.saved_at
                """,
                (
                    name,
                    snapshot.schema_version,
                    snapshot.seq,
                    index_json,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )

    def delete(self, name: str) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM view_snapshots WHERE name = ?", (name,))
