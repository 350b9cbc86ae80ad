"""Classifier - picks game events out of the raw log.

This is filtering, not validation: anything that does not look like one
of the three game event kinds is dropped without raising.
"""

import logging

from pydantic import ValidationError

from chessdb.contracts.events import (
    AcceptEvent,
    EndEvent,
    EventKind,
    GameEvent,
    InviteEvent,
    LogEntry,
)

logger = logging.getLogger(__name__)

GAME_CONTENT_TYPES = frozenset(kind.value for kind in EventKind)


def is_game_entry(entry: LogEntry) -> bool:
    """Check whether an entry declares one of the game content types."""
    return entry.content_type in GAME_CONTENT_TYPES


def classify(entry: LogEntry) -> GameEvent | None:
    """Turn a log entry into a game event.

    Returns:
        The event, or None when the entry is not a (well-formed) game entry
    """
    if not is_game_entry(entry):
        return None

    content = entry.content
    try:
        match EventKind(entry.content_type):
            case EventKind.INVITE:
                return InviteEvent(
                    game_id=entry.key,
                    inviter_id=entry.author,
                    invitee_id=content.get("inviting"),
                    inviter_color=content.get("myColor"),
                )

            case EventKind.ACCEPT:
                return AcceptEvent(game_id=content.get("root"))

            case EventKind.END:
                return EndEvent(
                    game_id=content.get("root"),
                    terminal_status=content.get("status"),
                    author_id=entry.author,
                )
    except ValidationError as e:
        logger.debug(f"Dropping malformed {entry.content_type} entry {entry.key}: {e.error_count()} errors")

    return None
