# shell_autocompleter/store/history.py
# Run-history persistence on top of the store collaborator:
#  - persist_history_entry: upsert a finished command with its transcript
#  - load_recent_history: read the newest entries back for the history view
#  - import_shell_history: seed the history table from shell history lines

from __future__ import annotations

import hashlib
import logging
import os
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from shell_autocompleter.core.errors import MissingTableError
from shell_autocompleter.core.protocols import StoreProtocol

logger = logging.getLogger(__name__)

SOURCE_TUI = "tui"
SOURCE_SHELL = "shell"
MAX_OUTPUT_LEN = 16 * 1024  # bytes, utf-8
TRUNC_SUFFIX = "\n…[truncated]"
_EXIT_PREFIX = "(exit code: "


@dataclass
class HistoryEntry:
    """A finished command run: the command line, its exit code and transcript."""
    cmd: str
    exit_code: Optional[int] = None
    output_lines: List[str] = field(default_factory=list)


def generate_session_id() -> str:
    return f"tui-{os.getpid()}-{int(time.time() * 1000)}"


def hash_command(command: str) -> str:
    return hashlib.sha256(command.encode("utf-8")).hexdigest()


def format_output(output_lines: List[str], exit_code: int) -> str:
    buf = "\n".join(output_lines)
    if buf:
        buf += "\n"
    return buf + f"{_EXIT_PREFIX}{exit_code})"


def truncate_output(output: str) -> str:
    """Cap `output` at MAX_OUTPUT_LEN utf-8 bytes, suffix included, never splitting a char."""
    raw = output.encode("utf-8")
    if len(raw) <= MAX_OUTPUT_LEN:
        return output
    limit = MAX_OUTPUT_LEN - len(TRUNC_SUFFIX.encode("utf-8"))
    if limit <= 0:
        return TRUNC_SUFFIX
    head = raw[:limit].decode("utf-8", errors="ignore")
    if not head:
        return TRUNC_SUFFIX
    return head + TRUNC_SUFFIX


def parse_output(output: str) -> HistoryEntry:
    """Split a stored transcript back into lines and the trailing exit code."""
    entry = HistoryEntry(cmd="")
    for line in (output or "").splitlines():
        if line.startswith(_EXIT_PREFIX) and line.endswith(")"):
            try:
                entry.exit_code = int(line[len(_EXIT_PREFIX):-1])
                continue
            except ValueError:
                pass
        entry.output_lines.append(line)
    return entry


def persist_history_entry(store: StoreProtocol,
                          command: str,
                          output_lines: List[str],
                          exit_code: int,
                          session_id: str) -> None:
    """
    Insert the command into history, or bump its count and replace the stored
    transcript when the same command (by hash) was run before.
    """
    trimmed = command.strip()
    if not trimmed:
        return
    output = truncate_output(format_output(output_lines, exit_code))
    store.execute(
        """
        INSERT INTO history (command, hash, count, source, session_id, output)
        VALUES (?, ?, 1, ?, ?, ?)
        ON CONFLICT(hash) DO UPDATE SET
            count = count + 1,
            source = excluded.source,
            session_id = excluded.session_id,
            output = excluded.output;
        """,
        [trimmed, hash_command(trimmed), SOURCE_TUI, session_id, output],
    )


def load_recent_history(store: StoreProtocol, limit: int = 100) -> List[HistoryEntry]:
    """Newest-first list of run entries; empty when the history table is missing."""
    try:
        rows = store.query("SELECT command, output FROM history ORDER BY id DESC LIMIT ?", [int(limit)])
    except MissingTableError:
        return []
    out: List[HistoryEntry] = []
    for command, output in rows:
        entry = parse_output(output or "")
        entry.cmd = command
        out.append(entry)
    return out


def import_shell_history(store: StoreProtocol, lines: Iterable[str]) -> int:
    """
    Seed `history` with shell history lines (source 'shell'), counting repeats.
    Commands already present are left untouched so re-importing is idempotent.
    Returns the number of distinct commands offered to the store.
    """
    counts = Counter(cmd for cmd in (ln.strip() for ln in lines) if cmd)
    rows = [(cmd, hash_command(cmd), n, SOURCE_SHELL) for cmd, n in counts.items()]
    if rows:
        store.executemany(
            "INSERT OR IGNORE INTO history (command, hash, count, source) VALUES (?, ?, ?, ?)",
            rows,
        )
    logger.debug("imported %d distinct shell history commands", len(rows))
    return len(rows)
