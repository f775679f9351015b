# shell_autocompleter/store/__init__.py
# sqlite store collaborator and run-history persistence

from .sqlite_store import SqliteStore, open_default
from .history import (
    HistoryEntry,
    import_shell_history,
    load_recent_history,
    persist_history_entry,
)

__all__ = [
    "SqliteStore",
    "open_default",
    "HistoryEntry",
    "import_shell_history",
    "load_recent_history",
    "persist_history_entry",
]
