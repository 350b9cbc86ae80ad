"""Read-only queries over a game index snapshot.

All functions are pure and never mutate the index they are given. The
two lazy ones (``finished_games`` and ``all_game_ids``) iterate over the
keys present when they were called.
"""

from typing import Iterator, Mapping

from chessdb.contracts.games import GameRecord, GameStatus, InviteSummary
from chessdb.errors import FrequencyScaleError

GameIndex = Mapping[str, GameRecord]


def pending_challenges_sent(index: GameIndex, player_id: str) -> list[InviteSummary]:
    """Invites sent by the player that have not been accepted."""
    return [
        InviteSummary.from_record(record)
        for record in index.values()
        if record.inviter_id == player_id and record.status == GameStatus.INVITED
    ]


def pending_challenges_received(index: GameIndex, player_id: str) -> list[InviteSummary]:
    """Invites addressed to the player that have not been accepted."""
    return [
        InviteSummary.from_record(record)
        for record in index.values()
        if record.invitee_id == player_id and record.status == GameStatus.INVITED
    ]


def games_agreed_to_play_ids(index: GameIndex, player_id: str) -> list[str]:
    """Ids of the player's games in progress."""
    return [
        game_id
        for game_id, record in index.items()
        if record.has_player(player_id) and record.status == GameStatus.STARTED
    ]


def observable_games(index: GameIndex, player_id: str) -> list[str]:
    """Ids of games in progress the player could spectate.

    A game with either player unknown is never observable.
    """
    result = []
    for game_id, record in index.items():
        if record.status != GameStatus.STARTED or record.has_player(player_id):
            continue
        if record.inviter_id and record.invitee_id:
            result.append(game_id)
    return result


def finished_games(index: GameIndex, player_id: str) -> Iterator[str]:
    """Lazily yield ids of the player's games that are over."""
    records = list(index.items())
    return (
        game_id
        for game_id, record in records
        if record.status not in (GameStatus.INVITED, GameStatus.STARTED)
        and record.has_player(player_id)
    )


def all_game_ids(index: GameIndex) -> Iterator[str]:
    """Lazily yield every game id in the index."""
    return iter(list(index))


def game_has_player(index: GameIndex, game_id: str, player_id: str) -> bool:
    record = index.get(game_id)
    return record is not None and record.has_player(player_id)


def player_games(index: GameIndex, player_id: str) -> list[GameRecord]:
    """Every record the player is a participant of."""
    return [record for record in index.values() if record.has_player(player_id)]


def weighted_play_frequency_list(index: GameIndex, player_id: str) -> dict[str, float]:
    """Weight each opponent by how often and how recently they played the player.

    Each shared game contributes ``last_updated / newest last_updated`` of
    all the player's games, so recent games count for more.

    Returns:
        Mapping of opponent id to summed weight (empty when no games)

    Raises:
        FrequencyScaleError: Every game of the player has last_updated == 0
    """
    games = player_games(index, player_id)
    if not games:
        return {}

    scale = max(game.last_updated for game in games)
    if scale == 0:
        raise FrequencyScaleError(player_id)

    weights: dict[str, float] = {}
    for game in games:
        opponent = game.other_player(player_id)
        if opponent is None:
            continue
        weights[opponent] = weights.get(opponent, 0.0) + game.last_updated / scale

    return weights
