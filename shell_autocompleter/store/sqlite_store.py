# shell_autocompleter/store/sqlite_store.py
"""
SqliteStore - the persistent store collaborator.

One connection shared by the interactive thread and background tasks, guarded by a
lock. Strategies only see query()/execute(); a missing table surfaces as
MissingTableError so callers can treat it as an empty result.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from shell_autocompleter.core.errors import MissingTableError
from shell_autocompleter.utils.config_manager import cache_dir

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """CREATE TABLE IF NOT EXISTS history (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        command     TEXT NOT NULL,
        hash        TEXT NOT NULL UNIQUE,
        count       INTEGER NOT NULL DEFAULT 1,
        source      TEXT DEFAULT 'shell',
        session_id  TEXT DEFAULT '',
        output      TEXT DEFAULT '',
        created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );""",
    "CREATE INDEX IF NOT EXISTS idx_history_command_prefix ON history(command);",
    """CREATE TABLE IF NOT EXISTS aliases (
        name TEXT PRIMARY KEY,
        cmd TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );""",
    """CREATE TABLE IF NOT EXISTS embeddings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source TEXT NOT NULL,
        text TEXT NOT NULL,
        emb BLOB NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );""",
    "CREATE INDEX IF NOT EXISTS idx_embeddings_source_text ON embeddings(source, text);",
)

# full-text index over history.command, kept in sync by triggers
FTS_STATEMENTS = (
    """CREATE VIRTUAL TABLE IF NOT EXISTS history_fts USING fts5(
        command, content='history', content_rowid='id'
    );""",
    """CREATE TRIGGER IF NOT EXISTS history_ai AFTER INSERT ON history BEGIN
        INSERT INTO history_fts(rowid, command) VALUES (new.id, new.command);
    END;""",
    """CREATE TRIGGER IF NOT EXISTS history_ad AFTER DELETE ON history BEGIN
        INSERT INTO history_fts(history_fts, rowid, command) VALUES ('delete', old.id, old.command);
    END;""",
    """CREATE TRIGGER IF NOT EXISTS history_au AFTER UPDATE ON history BEGIN
        INSERT INTO history_fts(history_fts, rowid, command) VALUES ('delete', old.id, old.command);
        INSERT INTO history_fts(rowid, command) VALUES (new.id, new.command);
    END;""",
)


def is_missing_table(err: BaseException) -> bool:
    return "no such table" in str(err)


class SqliteStore:
    """
    Thin query/execute wrapper around a sqlite3 connection.

    Usage:
        store = SqliteStore.open_path("~/.cache/shell_autocompleter/history.db")
        rows = store.query("SELECT command, count FROM history WHERE command LIKE ?", ["git%"])
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self._lock = threading.Lock()
        self.has_fts = False

    # construction ---------------------------------------------------------------
    @classmethod
    def open_path(cls, path: Union[str, Path], migrate: bool = True) -> "SqliteStore":
        p = Path(path).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        store = cls(sqlite3.connect(str(p), check_same_thread=False))
        if migrate:
            store.migrate()
        return store

    @classmethod
    def open_memory(cls, migrate: bool = False) -> "SqliteStore":
        store = cls(sqlite3.connect(":memory:", check_same_thread=False))
        if migrate:
            store.migrate()
        return store

    def migrate(self) -> None:
        """Create tables, indexes and the FTS index. Safe to run repeatedly."""
        with self._lock:
            for stmt in SCHEMA_STATEMENTS:
                self._conn.execute(stmt)
            try:
                for stmt in FTS_STATEMENTS:
                    self._conn.execute(stmt)
                self.has_fts = True
            except sqlite3.OperationalError as e:
                # sqlite built without fts5: frequency lookups will see a missing table
                logger.warning("full-text index unavailable: %s", e)
            self._conn.commit()

    # query/execute contract ---------------------------------------------------
    def query(self, sql: str, params: Iterable[Any] = ()) -> List[tuple]:
        with self._lock:
            try:
                return self._conn.execute(sql, tuple(params)).fetchall()
            except sqlite3.OperationalError as e:
                if is_missing_table(e):
                    raise MissingTableError(str(e)) from e
                raise

    def execute(self, sql: str, params: Iterable[Any] = ()) -> None:
        with self._lock:
            try:
                self._conn.execute(sql, tuple(params))
            except sqlite3.OperationalError as e:
                if is_missing_table(e):
                    raise MissingTableError(str(e)) from e
                raise
            self._conn.commit()

    def executemany(self, sql: str, rows: Iterable[Iterable[Any]]) -> None:
        with self._lock:
            self._conn.executemany(sql, [tuple(r) for r in rows])
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def open_default(path: Optional[Union[str, Path]] = None) -> Optional[SqliteStore]:
    """Open (and migrate) the store at `path`; None if the database cannot be opened."""
    target = Path(path) if path else cache_dir() / "history.db"
    try:
        return SqliteStore.open_path(target)
    except (OSError, sqlite3.Error) as e:
        logger.warning("failed to open history store %s: %s", target, e)
        return None
