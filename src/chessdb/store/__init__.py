"""chess-db store - event log, snapshot stores and the game index."""

from chessdb.store.event_log import EventLog, LogSource
from chessdb.store.snapshot_store import (
    SnapshotStore,
    MemorySnapshotStore,
    SqliteSnapshotStore,
)
from chessdb.store.index_store import IndexStore, INDEX_VERSION, DEFAULT_INDEX_NAME
from chessdb.store.projections.base import Projection
from chessdb.store.projections.games import GameIndexProjection

__all__ = [
    "EventLog",
    "LogSource",
    "SnapshotStore",
    "MemorySnapshotStore",
    "SqliteSnapshotStore",
    "IndexStore",
    "INDEX_VERSION",
    "DEFAULT_INDEX_NAME",
    "Projection",
    "GameIndexProjection",
]
