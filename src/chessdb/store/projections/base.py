"""Base class for projections."""

from abc import ABC, abstractmethod
from typing import Any, Iterable

from chessdb.contracts.events import LogEntry


class Projection(ABC):
    """Base class for log projections.

    A projection maintains derived state from the log.
    It can be rebuilt from scratch by replaying entries.
    """

    @abstractmethod
    def apply(self, entry: LogEntry) -> Any:
        """Apply one log entry to update projection state.

        Args:
            entry: The entry to apply, in log order

        Returns:
            Optional return value (e.g., the classified event)
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Reset projection to initial state."""
        pass

    def rebuild_from(self, entries: Iterable[LogEntry]) -> None:
        """Rebuild projection from a sequence of entries.

        This is used to restore state from the start of the log.
        """
        self.reset()
        for entry in entries:
            self.apply(entry)
