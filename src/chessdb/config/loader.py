"""Configuration loader for chess-db.

Loads config.py from the working directory or its parents, falling back
to defaults.
"""

import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

from . import defaults

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class Config:
    """Configuration object with attribute access."""

    def __init__(self, config_path: Path | None = None) -> None:
        # Start with defaults
        for key in defaults.CONFIG_KEYS:
            setattr(self, key, getattr(defaults, key))

        self.source: Path | None = config_path or self._find_config_file()
        if self.source is not None:
            self._load_user_config(self.source)

    def _load_user_config(self, config_path: Path) -> None:
        """Override defaults with values from a config.py."""
        user_config = self._load_module_from_path(config_path)

        for key in defaults.CONFIG_KEYS:
            if hasattr(user_config, key):
                setattr(self, key, getattr(user_config, key))

    def _find_config_file(self) -> Path | None:
        """Find config.py in current dir or parents."""
        current = Path.cwd()

        while True:
            config_path = current / "config.py"
            if config_path.exists():
                return config_path
            if current == current.parent:
                return None
            current = current.parent

    def _load_module_from_path(self, path: Path) -> ModuleType:
        """Load a Python module from a file path."""
        spec = importlib.util.spec_from_file_location("chessdb_user_config", path)
        if spec is None or spec.loader is None:
            raise RuntimeError(f"Could not load config from {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules["chessdb_user_config"] = module
        spec.loader.exec_module(module)
        return module

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value with optional default."""
        return getattr(self, key, default)

    @property
    def data_dir(self) -> Path:
        return Path(self.DATA_DIR)

    @property
    def log_db_path(self) -> Path:
        return self.data_dir / self.LOG_DB_NAME

    @property
    def view_db_path(self) -> Path:
        return self.data_dir / self.VIEW_DB_NAME

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.INDEX_NAME:
            errors.append("INDEX_NAME is not set")

        if self.LOG_DB_NAME == self.VIEW_DB_NAME:
            errors.append("LOG_DB_NAME and VIEW_DB_NAME must differ")

        if self.LOG_LEVEL not in LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

        if not isinstance(self.LOG_POLL_INTERVAL, (int, float)) or self.LOG_POLL_INTERVAL <= 0:
            errors.append("LOG_POLL_INTERVAL must be a positive number")

        return errors

    def __repr__(self) -> str:
        return f"<Config data_dir={self.DATA_DIR!r} source={self.source}>"


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration from disk."""
    global _config
    _config = Config()
    return _config
