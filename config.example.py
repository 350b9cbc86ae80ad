"""
chess-db Configuration

Copy this file to config.py and adjust the values.
config.py is looked up in the working directory and its parents.
"""

# =============================================================================
# Paths
# =============================================================================

DATA_DIR = "data"                 # Directory holding both SQLite files
LOG_DB_NAME = "log.db"            # Append-only event log
VIEW_DB_NAME = "views.db"         # Saved index snapshots

# =============================================================================
# Index
# =============================================================================

INDEX_NAME = "ssb-chess-index"    # Name the index snapshot is saved under
PERSIST_SNAPSHOTS = True          # False keeps snapshots in memory only

# Seconds between checks for entries appended by other processes
LOG_POLL_INTERVAL = 1.0

# =============================================================================
# Logging
# =============================================================================

LOG_LEVEL = "INFO"                # DEBUG, INFO, WARNING or ERROR
