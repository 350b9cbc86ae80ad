"""IndexStore - versioned, incrementally maintained game index.

The store is the only writer of the index. Readers receive immutable
VersionedSnapshots; every snapshot reflects some prefix of the log.
"""

import asyncio
import logging
import sqlite3
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from pydantic import ValidationError

from chessdb.contracts.games import VersionedSnapshot
from chessdb.errors import ChessDbError, SourceUnavailable
from chessdb.runtime.reducer import Clock
from chessdb.store.event_log import LogSource
from chessdb.store.projections.games import GameIndexProjection
from chessdb.store.snapshot_store import MemorySnapshotStore, SnapshotStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Version of the classify/reduce rules. Bump it whenever those rules change
# so saved snapshots are discarded and the index is rebuilt from the log.
INDEX_VERSION = 2

DEFAULT_INDEX_NAME = "ssb-chess-index"

# Entries read from the log per fold batch
READ_BATCH_SIZE = 1000

# Unreadable collaborators, including rows that no longer decode
_SOURCE_ERRORS = (OSError, sqlite3.Error, ValueError, ValidationError)


class IndexStore:
    """Folds the log into the game index and hands out snapshots.

    Concurrency:
    - All folds are serialized by a single lock
    - Concurrent get_snapshot() calls share one in-flight refresh
    - Cancelling a waiting caller does not cancel the shared refresh
    """

    def __init__(
        self,
        log: LogSource,
        snapshots: SnapshotStore | None = None,
        *,
        name: str = DEFAULT_INDEX_NAME,
        version: int = INDEX_VERSION,
        clock: Clock | None = None,
        batch_size: int = READ_BATCH_SIZE,
    ):
        """Initialize the index store.

        Args:
            log: Source of log entries
            snapshots: Where folded snapshots are saved (in-memory by default)
            name: View name the snapshot is saved under
            version: Schema version of the fold rules
            clock: Clock for record timestamps (defaults to time.time)
            batch_size: Entries read from the log per batch
        """
        self.log = log
        self.snapshots = snapshots if snapshots is not None else MemorySnapshotStore()
        self.name = name
        self.version = version
        self.batch_size = batch_size

        self._projection = GameIndexProjection(clock=clock)
        self._snapshot: VersionedSnapshot | None = None
        self._loaded = False

        self._fold_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task | None = None
        self._follow_task: asyncio.Task | None = None
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def seq(self) -> int:
        """Last log position folded into the index."""
        return self._projection.seq

    # ─────────────────────────────────────────────────────────────────────
    # Snapshots
    # ─────────────────────────────────────────────────────────────────────

    async def get_snapshot(self) -> VersionedSnapshot:
        """Bring the index up to date with the log and return a snapshot.

        Raises:
            SourceUnavailable: The log or the snapshot store could not be read
        """
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.create_task(self._refresh())
            task.add_done_callback(self._refresh_done)
            self._refresh_task = task
        return await asyncio.shield(task)

    def _refresh_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Refreshing {self.name} failed: {error}")

    async def _refresh(self) -> VersionedSnapshot:
        async with self._fold_lock:
            if not self._loaded:
                await self._load()

            folded = 0
            start_seq = self.seq
            while True:
                entries = await self._call_source(
                    "event log", asyncio.to_thread, self.log.read_since, self.seq, self.batch_size
                )
                if not entries:
                    break
                folded += self._projection.apply_all(entries)

            if self._snapshot is not None and self.seq == self._snapshot.seq:
                return self._snapshot

            # Only saved snapshots become current, so a failed save is retried
            snapshot = VersionedSnapshot.of(self.version, self.seq, self._projection.index)
            logger.info(
                f"Folded {self.seq - start_seq} entries ({folded} game events) into {self.name}, now at seq {self.seq}"
            )

            await self._call_source(
                "snapshot store", asyncio.to_thread, self.snapshots.save, self.name, snapshot
            )
            self._snapshot = snapshot
            self._publish(snapshot)
            return self._snapshot

    async def _load(self) -> None:
        """Resume from the stored snapshot, or start over on a version change."""
        stored = await self._call_source(
            "snapshot store", asyncio.to_thread, self.snapshots.load, self.name
        )

        if stored is not None and stored.schema_version != self.version:
            logger.warning(
                f"Index {self.name} was built with version {stored.schema_version}, "
                f"current version is {self.version}; rebuilding from the start of the log"
            )
            stored = None

        if stored is None:
            self._projection.reset()
        else:
            self._projection.restore(stored.index, stored.seq)
            logger.info(f"Resuming {self.name} from seq {stored.seq} ({len(stored)} games)")

        self._snapshot = VersionedSnapshot.of(self.version, self.seq, self._projection.index)
        self._loaded = True

    async def _call_source(
        self,
        source: str,
        func: Callable[..., Awaitable[T]],
        *args,
    ) -> T:
        """Await a collaborator call, mapping read failures to SourceUnavailable."""
        try:
            return await func(*args)
        except SourceUnavailable:
            raise
        except _SOURCE_ERRORS as e:
            raise SourceUnavailable(source, str(e)) from e

    # ─────────────────────────────────────────────────────────────────────
    # Live Updates
    # ─────────────────────────────────────────────────────────────────────

    def subscribe(self) -> asyncio.Queue:
        """Register for snapshots published after each advancing refresh.

        A failure of the follow task is delivered as an exception instance.
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    async def updates(self) -> AsyncIterator[VersionedSnapshot]:
        """Iterate over snapshots as the index advances."""
        queue = self.subscribe()
        try:
            while True:
                item = await queue.get()
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.unsubscribe(queue)

    def _publish(self, item: VersionedSnapshot | BaseException) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(item)

    async def start(self) -> None:
        """Start following the log."""
        if self._follow_task is None or self._follow_task.done():
            self._follow_task = asyncio.create_task(self._follow())

    async def stop(self) -> None:
        """Stop following the log."""
        if self._follow_task:
            self._follow_task.cancel()
            try:
                await self._follow_task
            except asyncio.CancelledError:
                pass
            self._follow_task = None

    @property
    def following(self) -> bool:
        return self._follow_task is not None and not self._follow_task.done()

    async def _follow(self) -> None:
        """Refresh whenever the log grows."""
        try:
            while True:
                await self.get_snapshot()
                await self._call_source("event log", self.log.wait_for_append, self.seq)
        except ChessDbError as e:
            logger.error(f"Stopped following log for {self.name}: {e}")
            self._publish(e)
        except Exception as e:
            logger.exception(f"Unexpected error following log for {self.name}")
            self._publish(e)
