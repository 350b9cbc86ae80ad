"""Per-game records and the snapshots that carry them to readers."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, Field


class GameStatus(str, Enum):
    """Lifecycle of a game. Only ever moves forward."""

    INVITED = "invited"
    STARTED = "started"
    ENDED = "ended"


class TerminalStatus(str, Enum):
    """End statuses that decide a winner. Anything else is stored verbatim."""

    MATE = "mate"
    DRAW = "draw"
    RESIGNED = "resigned"


class GameRecord(BaseModel):
    """State of one game, keyed by game id in the index.

    Records are frozen; the reducer replaces a record rather than mutating
    it, so a snapshot can share records with the live index.
    """

    game_id: str
    inviter_id: str | None = None
    invitee_id: str | None = None
    inviter_color: str | None = None
    status: GameStatus = GameStatus.INVITED
    terminal_status: str | None = Field(
        default=None, description="Raw end status, set only when ENDED"
    )
    winner_id: str | None = None
    last_updated: float = Field(
        default=0.0, description="Processing wall-clock time in epoch seconds"
    )

    model_config = {"frozen": True}

    def has_player(self, player_id: str) -> bool:
        return self.inviter_id == player_id or self.invitee_id == player_id

    def other_player(self, player_id: str) -> str | None:
        """The opponent of ``player_id`` in this game."""
        if self.invitee_id != player_id:
            return self.invitee_id
        return self.inviter_id


class InviteSummary(BaseModel):
    """A pending invite as returned by the challenge queries."""

    game_id: str
    sent_by: str | None
    inviting: str | None
    inviter_color: str | None
    timestamp: float

    model_config = {"frozen": True}

    @classmethod
    def from_record(cls, record: GameRecord) -> "InviteSummary":
        return cls(
            game_id=record.game_id,
            sent_by=record.inviter_id,
            inviting=record.invitee_id,
            inviter_color=record.inviter_color,
            timestamp=record.last_updated,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameId": self.game_id,
            "sentBy": self.sent_by,
            "inviting": self.inviting,
            "inviterColor": self.inviter_color,
            "timestamp": self.timestamp,
        }


Index = dict[str, GameRecord]


@dataclass(frozen=True)
class VersionedSnapshot:
    """Read-only view of the index at some prefix of the log.

    Attributes:
        schema_version: Version of the classify/reduce rules that built it
        seq: Last log position folded into the index (0 when empty)
        index: Read-only mapping of game id to record
    """

    schema_version: int
    seq: int = 0
    index: Mapping[str, GameRecord] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def of(cls, schema_version: int, seq: int, index: Index) -> "VersionedSnapshot":
        """Freeze a copy of ``index``."""
        return cls(
            schema_version=schema_version,
            seq=seq,
            index=MappingProxyType(dict(index)),
        )

    def __len__(self) -> int:
        return len(self.index)
