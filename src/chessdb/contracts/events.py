"""Log entries and the game events classified from them."""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    """Content types recognized by the game index.

    The values are the ``content.type`` strings written by chess clients.
    """

    INVITE = "chess_invite"
    ACCEPT = "chess_invite_accept"
    END = "chess_game_end"


class LogEntry(BaseModel):
    """Immutable entry of the append-only log.

    Every entry has:
    - key: Unique entry identifier (an invite's key is its game id)
    - seq: Position in the log, strictly increasing from 1
    - author: Opaque identifier of the player who wrote the entry
    - timestamp: Time claimed by the author, informational only
    - content: Arbitrary payload; only mappings with a known type matter
    """

    key: str = Field(description="Unique entry identifier")
    seq: int = Field(ge=1, description="Log position")
    author: str = Field(description="Author identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Author-claimed timestamp",
    )
    content: Any = Field(default=None, description="Entry payload")

    model_config = {"frozen": True}

    @property
    def content_type(self) -> str | None:
        if isinstance(self.content, dict):
            kind = self.content.get("type")
            return kind if isinstance(kind, str) else None
        return None


class InviteEvent(BaseModel):
    """A player challenged another player to a game."""

    kind: Literal[EventKind.INVITE] = EventKind.INVITE
    game_id: str
    inviter_id: str
    invitee_id: str | None = None
    inviter_color: str | None = None

    model_config = {"frozen": True}


class AcceptEvent(BaseModel):
    """The invitee accepted the invite identified by ``game_id``."""

    kind: Literal[EventKind.ACCEPT] = EventKind.ACCEPT
    game_id: str

    model_config = {"frozen": True}


class EndEvent(BaseModel):
    """A game finished with ``terminal_status``, reported by ``author_id``."""

    kind: Literal[EventKind.END] = EventKind.END
    game_id: str
    terminal_status: str
    author_id: str

    model_config = {"frozen": True}


GameEvent = Union[InviteEvent, AcceptEvent, EndEvent]


# ─────────────────────────────────────────────────────────────────────────────
# Content shapes (for documentation, not runtime enforcement)
# ─────────────────────────────────────────────────────────────────────────────

"""
chess_invite:
    inviting: str       # invitee player id
    myColor: str        # "white" | "black"

chess_invite_accept:
    root: str           # key of the invite entry

chess_game_end:
    root: str           # key of the invite entry
    status: str         # "mate" | "draw" | "resigned" | other
"""
