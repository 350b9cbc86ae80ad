"""Exceptions raised by the game index."""


class ChessDbError(Exception):
    """Base exception for game index errors."""


class SourceUnavailable(ChessDbError):
    """Raised when the log or the snapshot store cannot be read or written."""

    def __init__(self, source: str, reason: str | None = None):
        self.source = source
        self.reason = reason

        if reason:
            message = f"{source} is unavailable: {reason}"
        else:
            message = f"{source} is unavailable"

        super().__init__(message)


class FrequencyScaleError(ChessDbError):
    """Raised when play-frequency weights cannot be normalized.

    Every game of the player has a zero last-updated time, so there is no
    scale to divide by.
    """

    def __init__(self, player_id: str):
        self.player_id = player_id
        super().__init__(
            f"Cannot weight play frequency for {player_id}: all games have last_updated == 0"
        )
