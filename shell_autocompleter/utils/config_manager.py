# config_manager.py - JSON config manager

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

APP_NAME = "shell_autocompleter"

DEFAULTS = {
    "max_suggestions": 20,
    "debounce_ms": 300,
    "tick_ms": 33,
    "unique": True,
    "enable_embedding": False,
    "embedding_model": None,
    "enable_llm": False,
    "llm_model": None,
    "log_level": "INFO",
    "db_path": None,
}


def cache_dir() -> Path:
    """$XDG_CACHE_HOME/shell_autocompleter, or ~/.cache/shell_autocompleter."""
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / APP_NAME


class Config:
    def __init__(self, path=None):
        self.path = Path(path) if path else cache_dir() / "config.json"
        self.data = dict(DEFAULTS)
        self._load()

    def _load(self):
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf8") as f:
                loaded = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("ignoring unreadable config %s: %s", self.path, e)
            return
        if isinstance(loaded, dict):
            self.data.update({k: v for k, v in loaded.items() if k in DEFAULTS})

    def save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf8") as f:
            json.dump(self.data, f, indent=2)

    def get(self, key, default=None):
        return self.data.get(key, default)

    def __getitem__(self, key):
        return self.data[key]

    def show(self):
        return [f"{k:18} = {v}" for k, v in self.data.items()]

    def set(self, key, val):
        """Set `key`, coercing to the type of its default. Unknown keys raise KeyError."""
        if key not in DEFAULTS:
            raise KeyError(f"No such option: {key}")
        self.data[key] = _coerce(DEFAULTS[key], val)
        self.save()

    def db_path(self) -> Path:
        return Path(self.data["db_path"]) if self.data.get("db_path") else cache_dir() / "history.db"


def _coerce(default, val):
    if isinstance(default, bool):
        if isinstance(val, str):
            return val.strip().lower() in ("1", "true", "yes", "on")
        return bool(val)
    if default is None or val is None:
        return val
    return type(default)(val)
