# shell_autocompleter/history/aliases.py
# Alias definitions from shell rc files, synced into the `aliases` table.

import logging
import re
from pathlib import Path
from typing import Iterable, List, Union

from shell_autocompleter.core.protocols import AliasEntry, StoreProtocol

logger = logging.getLogger(__name__)

_ALIAS_RE = re.compile(r"""^\s*alias\s+([\w.-]+)=(["'])(.+)\2\s*$""")


def parse_aliases(text: str) -> List[AliasEntry]:
    """Extract `alias name='cmd'` / `alias name="cmd"` lines."""
    out: List[AliasEntry] = []
    for line in text.splitlines():
        m = _ALIAS_RE.match(line)
        if not m:
            continue
        name, quote, cmd = m.group(1), m.group(2), m.group(3)
        if quote == '"':
            cmd = cmd.replace('\\"', '"').replace("\\\\", "\\")
        out.append(AliasEntry(name=name, cmd=cmd))
    return out


def extract_zsh_aliases(path: Union[str, Path]) -> List[AliasEntry]:
    p = Path(path).expanduser()
    return parse_aliases(p.read_text(encoding="utf-8", errors="replace"))


def sync_aliases(store: StoreProtocol, aliases: Iterable[AliasEntry]) -> int:
    """Upsert aliases, refreshing updated_at so recency ordering follows the rc file."""
    rows = [(a["name"], a["cmd"]) for a in aliases]
    if rows:
        store.executemany(
            """
            INSERT INTO aliases (name, cmd, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(name) DO UPDATE SET cmd = excluded.cmd, updated_at = CURRENT_TIMESTAMP;
            """,
            rows,
        )
    logger.debug("synced %d aliases", len(rows))
    return len(rows)
