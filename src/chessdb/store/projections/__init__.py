"""Projections - derived views from the log."""

from chessdb.store.projections.base import Projection
from chessdb.store.projections.games import GameIndexProjection

__all__ = [
    "Projection",
    "GameIndexProjection",
]
