"""Reducer - deterministic fold of game events into the index."""

import time
from typing import Callable

from chessdb.contracts.events import AcceptEvent, EndEvent, GameEvent, InviteEvent
from chessdb.contracts.games import GameRecord, GameStatus, Index, TerminalStatus

Clock = Callable[[], float]


def reduce(index: Index, event: GameEvent, now: Clock | None = None) -> Index:
    """Apply one event to the index.

    This is the core reducer function. The index is updated in place and
    returned; records themselves are replaced, never mutated.

    Args:
        index: Mapping of game id to record
        event: A classified game event
        now: Clock for ``last_updated`` (defaults to ``time.time``)
    """
    stamp = (now or time.time)()

    match event:
        case InviteEvent():
            _apply_invite(index, event, stamp)
        case AcceptEvent():
            _apply_accept(index, event, stamp)
        case EndEvent():
            _apply_end(index, event, stamp)

    return index


def _apply_invite(index: Index, event: InviteEvent, stamp: float) -> None:
    """Record the players. An existing record keeps its status."""
    players = {
        "inviter_id": event.inviter_id,
        "invitee_id": event.invitee_id,
        "inviter_color": event.inviter_color,
    }
    record = index.get(event.game_id)

    if record is None:
        index[event.game_id] = GameRecord(
            game_id=event.game_id,
            status=GameStatus.INVITED,
            last_updated=stamp,
            **players,
        )
    else:
        index[event.game_id] = record.model_copy(
            update={**players, "last_updated": stamp}
        )


def _apply_accept(index: Index, event: AcceptEvent, stamp: float) -> None:
    """Advance INVITED to STARTED.

    An accept for an unknown game creates a STARTED record with no players.
    """
    record = index.get(event.game_id)

    if record is None:
        index[event.game_id] = GameRecord(
            game_id=event.game_id,
            status=GameStatus.STARTED,
            last_updated=stamp,
        )
        return

    update: dict = {"last_updated": stamp}
    if record.status == GameStatus.INVITED:
        update["status"] = GameStatus.STARTED
    index[event.game_id] = record.model_copy(update=update)


def _apply_end(index: Index, event: EndEvent, stamp: float) -> None:
    """Mark the game ENDED and work out the winner from the players known now."""
    record = index.get(event.game_id) or GameRecord(game_id=event.game_id)

    index[event.game_id] = record.model_copy(
        update={
            "status": GameStatus.ENDED,
            "terminal_status": event.terminal_status,
            "winner_id": winner_from_end(record, event),
            "last_updated": stamp,
        }
    )


def winner_from_end(record: GameRecord, event: EndEvent) -> str | None:
    """Infer the winner of a game from its end event.

    - mate: the author delivered mate
    - draw: nobody
    - resigned: the known player who is not the author
    - anything else: nobody
    """
    match event.terminal_status:
        case TerminalStatus.MATE.value:
            return event.author_id
        case TerminalStatus.RESIGNED.value:
            for player in (record.inviter_id, record.invitee_id):
                if player is not None and player != event.author_id:
                    return player
            return None
        case _:
            return None
