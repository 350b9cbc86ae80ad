"""Tests for the read-only game index queries."""

import pytest

from chessdb.contracts.games import GameRecord, GameStatus
from chessdb.core import query
from chessdb.errors import FrequencyScaleError


def game(game_id, inviter=None, invitee=None, status=GameStatus.INVITED, updated=100.0, **extra):
    return GameRecord(
        game_id=game_id,
        inviter_id=inviter,
        invitee_id=invitee,
        status=status,
        last_updated=updated,
        **extra,
    )


def index_of(*records):
    return {record.game_id: record for record in records}


class TestPendingChallenges:
    def test_sent_only_invited(self):
        index = index_of(
            game("g1", "A", "B", inviter_color="white"),
            game("g2", "A", "C", GameStatus.STARTED),
            game("g3", "B", "A"),
        )
        sent = query.pending_challenges_sent(index, "A")

        assert [s.game_id for s in sent] == ["g1"]
        assert sent[0].inviter_color == "white"
        assert sent[0].timestamp == 100.0

    def test_received(self):
        index = index_of(game("g1", "A", "B"), game("g3", "B", "A"))
        received = query.pending_challenges_received(index, "A")

        assert [r.game_id for r in received] == ["g3"]
        assert received[0].sent_by == "B"
        assert received[0].inviting == "A"

    def test_no_invites(self):
        assert query.pending_challenges_sent({}, "A") == []
        assert query.pending_challenges_received({}, "A") == []


class TestGamesAgreedToPlay:
    def test_started_games_either_side(self):
        index = index_of(
            game("g1", "A", "B", GameStatus.STARTED),
            game("g2", "C", "A", GameStatus.STARTED),
            game("g3", "A", "B", GameStatus.ENDED),
            game("g4", "C", "D", GameStatus.STARTED),
        )
        assert sorted(query.games_agreed_to_play_ids(index, "A")) == ["g1", "g2"]


class TestObservableGames:
    def test_excludes_own_games(self):
        index = index_of(
            game("g1", "A", "B", GameStatus.STARTED),
            game("g2", "C", "D", GameStatus.STARTED),
        )
        assert query.observable_games(index, "A") == ["g2"]
        assert query.observable_games(index, "C") == ["g1"]

    def test_excludes_games_with_unknown_players(self):
        index = index_of(
            game("g1", None, None, GameStatus.STARTED),
            game("g2", "C", None, GameStatus.STARTED),
            game("g3", None, "D", GameStatus.STARTED),
        )
        assert query.observable_games(index, "A") == []

    def test_only_started(self):
        index = index_of(
            game("g1", "C", "D", GameStatus.INVITED),
            game("g2", "C", "D", GameStatus.ENDED),
        )
        assert query.observable_games(index, "A") == []


class TestFinishedGames:
    def test_finished_for_player(self):
        index = index_of(
            game("g1", "A", "B", GameStatus.ENDED, terminal_status="mate"),
            game("g2", "A", "B", GameStatus.STARTED),
            game("g3", "C", "D", GameStatus.ENDED, terminal_status="draw"),
        )
        assert list(query.finished_games(index, "A")) == ["g1"]

    def test_snapshot_taken_at_call_time(self):
        index = index_of(game("g1", "A", "B", GameStatus.ENDED))
        finished = query.finished_games(index, "A")

        index["g2"] = game("g2", "A", "B", GameStatus.ENDED)
        assert list(finished) == ["g1"]

    def test_is_lazy(self):
        finished = query.finished_games({}, "A")
        assert not isinstance(finished, list)
        assert list(finished) == []


class TestAllGameIds:
    def test_every_key(self):
        index = index_of(game("g1"), game("g2", status=GameStatus.ENDED))
        assert sorted(query.all_game_ids(index)) == ["g1", "g2"]

    def test_snapshot_taken_at_call_time(self):
        index = index_of(game("g1"))
        ids = query.all_game_ids(index)
        index["g2"] = game("g2")
        assert list(ids) == ["g1"]


class TestGameHasPlayer:
    def test_membership(self):
        index = index_of(game("g1", "A", "B"))
        assert query.game_has_player(index, "g1", "A")
        assert query.game_has_player(index, "g1", "B")
        assert not query.game_has_player(index, "g1", "C")

    def test_missing_game(self):
        assert not query.game_has_player({}, "g1", "A")


class TestWeightedPlayFrequency:
    def test_no_games(self):
        index = index_of(game("g1", "B", "C"))
        assert query.weighted_play_frequency_list(index, "A") == {}

    def test_weights_scaled_by_newest_game(self):
        index = index_of(
            game("g1", "A", "B", updated=100.0),
            game("g2", "B", "A", updated=50.0),
            game("g3", "A", "C", updated=25.0),
            game("g4", "C", "D", updated=1000.0),
        )
        weights = query.weighted_play_frequency_list(index, "A")

        assert weights == pytest.approx({"B": 1.5, "C": 0.25})

    def test_unknown_opponent_skipped(self):
        index = index_of(
            game("g1", "A", None, updated=200.0),
            game("g2", "A", "B", updated=100.0),
        )
        assert query.weighted_play_frequency_list(index, "A") == pytest.approx({"B": 0.5})

    def test_zero_timestamps_raise(self):
        index = index_of(game("g1", "A", "B", updated=0.0))
        with pytest.raises(FrequencyScaleError):
            query.weighted_play_frequency_list(index, "A")
