"""Default configuration values for chess-db."""

from typing import Literal

# Paths
DATA_DIR: str = "data"
LOG_DB_NAME: str = "log.db"
VIEW_DB_NAME: str = "views.db"

# Index
INDEX_NAME: str = "ssb-chess-index"
PERSIST_SNAPSHOTS: bool = True

# Seconds between checks for entries appended by other processes
LOG_POLL_INTERVAL: float = 1.0

# Logging
LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

# All configurable keys (for validation)
CONFIG_KEYS = {
    "DATA_DIR",
    "LOG_DB_NAME",
    "VIEW_DB_NAME",
    "INDEX_NAME",
    "PERSIST_SNAPSHOTS",
    "LOG_POLL_INTERVAL",
    "LOG_LEVEL",
}
