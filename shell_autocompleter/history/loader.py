# shell_autocompleter/history/loader.py
# Line-oriented shell history loading.
#  - lossy utf-8 decode, one command per line
#  - zsh EXTENDED_HISTORY prefix (": 1700000000:0;cmd") is stripped
#  - trailing "\" joins the next line into the same command

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from shell_autocompleter.core.errors import HistoryLoadError

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_FILES = (".zsh_history", ".bash_history", ".fish_history")

PathLike = Union[str, Path]


def _strip_extended_prefix(line: str) -> str:
    if line.startswith(": ") and ";" in line:
        return line.split(";", 1)[1]
    return line


def parse_history_text(text: str) -> List[str]:
    """Split raw history text into commands."""
    commands: List[str] = []
    pending: List[str] = []
    for raw in text.splitlines():
        line = _strip_extended_prefix(raw)
        if line.rstrip().endswith("\\"):
            pending.append(line.rstrip()[:-1].strip())
            continue
        if pending:
            pending.append(line.strip())
            commands.append(" ".join(p for p in pending if p))
            pending = []
            continue
        if line.strip():
            commands.append(line.strip())
    if pending:
        commands.append(" ".join(p for p in pending if p))
    return commands


def read_history_file(path: PathLike) -> List[str]:
    """Read one history file. Raises HistoryLoadError if it cannot be read."""
    p = Path(path).expanduser()
    try:
        data = p.read_bytes()
    except OSError as e:
        raise HistoryLoadError(f"reading {p}: {e}") from e
    return parse_history_text(data.decode("utf-8", errors="replace"))


def dedupe(lines: Iterable[str]) -> List[str]:
    """Drop repeated lines, keeping the first occurrence."""
    seen = set()
    out = []
    for ln in lines:
        if ln in seen:
            continue
        seen.add(ln)
        out.append(ln)
    return out


def default_history_files(home: Optional[Path] = None) -> List[Path]:
    root = home if home is not None else Path.home()
    return [root / name for name in DEFAULT_HISTORY_FILES]


def load_history_lines(files: Sequence[PathLike] = (), unique: bool = True,
                       home: Optional[Path] = None) -> List[str]:
    """
    Load the corpus for the fuzzy baseline.

    Explicit `files` must all be readable (HistoryLoadError otherwise). With no files,
    the usual shell history files under the home directory are tried and missing ones
    are skipped.
    """
    lines: List[str] = []
    if files:
        for f in files:
            lines.extend(read_history_file(f))
    else:
        for p in default_history_files(home):
            if p.exists():
                lines.extend(read_history_file(p))
            else:
                logger.debug("history file %s not found, skipping", p)
    if unique:
        lines = dedupe(lines)
    logger.info("loaded %d history lines", len(lines))
    return lines
