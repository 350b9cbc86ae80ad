"""Change streams - push query results only when they actually change."""

import asyncio
import logging
from typing import AsyncIterator, Callable, Generic, Mapping, Sequence, TypeVar

from chessdb.contracts.games import GameRecord, VersionedSnapshot
from chessdb.store.index_store import IndexStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (previous, current) -> True when current should be emitted
Comparator = Callable[[T, T], bool]


def ids_changed(previous: Sequence[str], current: Sequence[str]) -> bool:
    """True when two id lists differ as sets, in either direction."""
    return set(previous) != set(current)


def values_changed(previous: object, current: object) -> bool:
    return previous != current


async def omit_immediate_repeats(
    source: AsyncIterator[T],
    changed: Comparator = values_changed,
) -> AsyncIterator[T]:
    """Re-yield values from ``source``, skipping ones that did not change.

    The first value is always yielded. Each later value is compared with
    the last one yielded, not with the one just before it.
    """
    sentinel = object()
    last: object = sentinel

    try:
        async for value in source:
            if last is sentinel or changed(last, value):
                last = value
                yield value
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()


class ChangeStream(Generic[T]):
    """Live result of a query over the game index.

    Yields the query result for the current snapshot, then a new result
    each time the index advances and the result changed. Recomputation
    runs one snapshot at a time. Closing the iterator unsubscribes.
    """

    def __init__(
        self,
        store: IndexStore,
        query: Callable[[Mapping[str, GameRecord]], T],
        changed: Comparator = values_changed,
    ):
        self.store = store
        self.query = query
        self.changed = changed

    def __aiter__(self) -> AsyncIterator[T]:
        return omit_immediate_repeats(self._results(), self.changed)

    async def _results(self) -> AsyncIterator[T]:
        queue = self.store.subscribe()
        try:
            snapshot = await self.store.get_snapshot()
            seen = snapshot.seq
            yield self.query(snapshot.index)

            while True:
                item = await queue.get()
                if isinstance(item, BaseException):
                    raise item
                snapshot = _latest(queue, item)
                if snapshot.seq <= seen:
                    continue
                seen = snapshot.seq
                yield self.query(snapshot.index)
        finally:
            self.store.unsubscribe(queue)
            logger.debug("Change stream closed")


def _latest(queue: asyncio.Queue, item: VersionedSnapshot) -> VersionedSnapshot:
    """Skip to the newest snapshot already queued."""
    while not queue.empty():
        queued = queue.get_nowait()
        if isinstance(queued, BaseException):
            raise queued
        item = queued
    return item
