"""GameIndexProjection - per-game state folded from the log."""

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from chessdb.contracts.events import GameEvent, LogEntry
from chessdb.contracts.games import GameRecord, Index
from chessdb.runtime.classifier import classify
from chessdb.runtime.reducer import Clock, reduce
from chessdb.store.projections.base import Projection


@dataclass
class GameIndexProjection(Projection):
    """Maintains the game index from the log.

    Entries that do not classify as game events only advance ``seq``.
    """

    index: Index = field(default_factory=dict)

    # Last log position applied
    seq: int = 0

    clock: Clock | None = None

    def reset(self) -> None:
        """Reset to initial state."""
        self.index.clear()
        self.seq = 0

    def restore(self, index: Mapping[str, GameRecord], seq: int) -> None:
        """Resume from a previously saved index."""
        self.index = dict(index)
        self.seq = seq

    def apply(self, entry: LogEntry) -> GameEvent | None:
        """Apply entry and return the game event it carried, if any."""
        self.seq = entry.seq

        event = classify(entry)
        if event is not None:
            reduce(self.index, event, self.clock)
        return event

    def apply_all(self, entries: Iterable[LogEntry]) -> int:
        """Apply entries in order.

        Returns:
            Number of entries that were game events
        """
        folded = 0
        for entry in entries:
            if self.apply(entry) is not None:
                folded += 1
        return folded
