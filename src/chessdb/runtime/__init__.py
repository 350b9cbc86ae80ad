"""chess-db runtime - classification and the fold over game events."""

from chessdb.runtime.classifier import classify, is_game_entry, GAME_CONTENT_TYPES
from chessdb.runtime.reducer import reduce, winner_from_end

__all__ = [
    "classify",
    "is_game_entry",
    "GAME_CONTENT_TYPES",
    "reduce",
    "winner_from_end",
]
