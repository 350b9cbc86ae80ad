"""ChessIndex - the query surface over the game index.

Every operation first brings the index up to date with the log, then
answers from that one snapshot. A failure to read the log or the
snapshot store aborts the whole operation.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Iterator, Mapping, Sequence

from chessdb.config import Config, get_config
from chessdb.contracts.games import GameRecord, InviteSummary, VersionedSnapshot
from chessdb.core import query
from chessdb.core.stream import ChangeStream, ids_changed
from chessdb.store.event_log import EventLog, LogSource
from chessdb.store.index_store import IndexStore
from chessdb.store.snapshot_store import MemorySnapshotStore, SnapshotStore, SqliteSnapshotStore

logger = logging.getLogger(__name__)

# Queries a watch() can follow, keyed by name
IdQuery = Callable[[Mapping[str, GameRecord], str], Sequence[str]]

WATCHABLE_QUERIES: dict[str, IdQuery] = {
    "games_agreed_to_play": query.games_agreed_to_play_ids,
    "observable_games": query.observable_games,
    "finished_games": lambda index, player_id: list(query.finished_games(index, player_id)),
}


class ChessIndex:
    """Queryable materialized view of chess games in the log."""

    def __init__(self, store: IndexStore):
        self.store = store

    @classmethod
    def open(
        cls,
        log: LogSource,
        snapshots: SnapshotStore | None = None,
        **store_options,
    ) -> "ChessIndex":
        """Build an index over ``log``."""
        return cls(IndexStore(log, snapshots, **store_options))

    @classmethod
    def from_config(cls, config: Config | None = None) -> "ChessIndex":
        """Build an index over the SQLite log in the configured data dir."""
        config = config or get_config()
        log = EventLog(config.log_db_path, poll_interval=config.LOG_POLL_INTERVAL)

        snapshots: SnapshotStore
        if config.PERSIST_SNAPSHOTS:
            snapshots = SqliteSnapshotStore(config.view_db_path)
        else:
            snapshots = MemorySnapshotStore()

        logger.info(f"Opening {config.INDEX_NAME} over {config.log_db_path}")
        return cls(IndexStore(log, snapshots, name=config.INDEX_NAME))

    async def snapshot(self) -> VersionedSnapshot:
        return await self.store.get_snapshot()

    async def start(self) -> None:
        """Follow the log so watchers see new entries without polling."""
        await self.store.start()

    async def stop(self) -> None:
        await self.store.stop()

    async def __aenter__(self) -> "ChessIndex":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────

    async def pending_challenges_sent(self, player_id: str) -> list[InviteSummary]:
        snapshot = await self.snapshot()
        return query.pending_challenges_sent(snapshot.index, player_id)

    async def pending_challenges_received(self, player_id: str) -> list[InviteSummary]:
        snapshot = await self.snapshot()
        return query.pending_challenges_received(snapshot.index, player_id)

    async def get_games_agreed_to_play_ids(self, player_id: str) -> list[str]:
        snapshot = await self.snapshot()
        return query.games_agreed_to_play_ids(snapshot.index, player_id)

    async def get_observable_games(self, player_id: str) -> list[str]:
        snapshot = await self.snapshot()
        return query.observable_games(snapshot.index, player_id)

    def get_games_finished(self, player_id: str) -> AsyncIterator[str]:
        """Stream ids of the player's finished games.

        The snapshot is requested when this is called, so the stream
        reflects the log as of the call even if iterated later.
        """
        return self._stream(lambda index: query.finished_games(index, player_id))

    def get_all_games_in_db(self) -> AsyncIterator[str]:
        """Stream the ids of all games in the index."""
        return self._stream(query.all_game_ids)

    def _stream(
        self, select: Callable[[Mapping[str, GameRecord]], Iterator[str]]
    ) -> AsyncIterator[str]:
        pending = asyncio.ensure_future(self.snapshot())
        pending.add_done_callback(_retrieve_error)
        return _iterate(pending, select)

    async def game_has_player(self, game_id: str, player_id: str) -> bool:
        snapshot = await self.snapshot()
        return query.game_has_player(snapshot.index, game_id, player_id)

    async def weighted_play_frequency_list(self, player_id: str) -> dict[str, float]:
        """Opponents of the player weighted by how often and how recently they played."""
        snapshot = await self.snapshot()
        return query.weighted_play_frequency_list(snapshot.index, player_id)

    async def get_game(self, game_id: str) -> GameRecord | None:
        snapshot = await self.snapshot()
        return snapshot.index.get(game_id)

    # ─────────────────────────────────────────────────────────────────────
    # Live
    # ─────────────────────────────────────────────────────────────────────

    def watch(self, query_name: str, player_id: str) -> ChangeStream[Sequence[str]]:
        """Follow an id-list query for a player.

        Args:
            query_name: One of WATCHABLE_QUERIES
            player_id: Subject of the query

        Returns:
            Async iterable of id lists, repeated only when the set of ids changes
        """
        try:
            id_query = WATCHABLE_QUERIES[query_name]
        except KeyError:
            raise ValueError(
                f"Unknown query {query_name!r}; expected one of {', '.join(WATCHABLE_QUERIES)}"
            ) from None

        return ChangeStream(
            self.store,
            lambda index: id_query(index, player_id),
            ids_changed,
        )


async def _iterate(
    pending: asyncio.Future,
    select: Callable[[Mapping[str, GameRecord]], Iterator[str]],
) -> AsyncIterator[str]:
    snapshot = await pending
    for game_id in select(snapshot.index):
        yield game_id


def _retrieve_error(task: asyncio.Future) -> None:
    # A stream may be dropped without being iterated
    if not task.cancelled():
        task.exception()
