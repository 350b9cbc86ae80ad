"""chess-db - a queryable index of chess games recorded in an append-only log."""

from chessdb.contracts import GameRecord, GameStatus, InviteSummary, LogEntry, VersionedSnapshot
from chessdb.core import ChessIndex, ChangeStream
from chessdb.errors import ChessDbError, FrequencyScaleError, SourceUnavailable
from chessdb.store import EventLog, IndexStore, INDEX_VERSION

__version__ = "0.2.0"

__all__ = [
    "ChessIndex",
    "ChangeStream",
    "IndexStore",
    "EventLog",
    "INDEX_VERSION",
    "GameRecord",
    "GameStatus",
    "InviteSummary",
    "LogEntry",
    "VersionedSnapshot",
    "ChessDbError",
    "SourceUnavailable",
    "FrequencyScaleError",
]
