"""chess-db contracts - typed schemas for log entries, events and records."""

from chessdb.contracts.events import (
    EventKind,
    LogEntry,
    InviteEvent,
    AcceptEvent,
    EndEvent,
    GameEvent,
)
from chessdb.contracts.games import (
    GameStatus,
    TerminalStatus,
    GameRecord,
    InviteSummary,
    Index,
    VersionedSnapshot,
)

__all__ = [
    # Events
    "EventKind",
    "LogEntry",
    "InviteEvent",
    "AcceptEvent",
    "EndEvent",
    "GameEvent",
    # Games
    "GameStatus",
    "TerminalStatus",
    "GameRecord",
    "InviteSummary",
    "Index",
    "VersionedSnapshot",
]
