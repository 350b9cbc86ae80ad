"""chess-db core - queries, change streams and the ChessIndex facade."""

from chessdb.core.engine import ChessIndex, WATCHABLE_QUERIES
from chessdb.core.stream import ChangeStream, omit_immediate_repeats, ids_changed

__all__ = [
    "ChessIndex",
    "WATCHABLE_QUERIES",
    "ChangeStream",
    "omit_immediate_repeats",
    "ids_changed",
]
