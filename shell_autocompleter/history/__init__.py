# shell_autocompleter/history/__init__.py
# reading shell history files and alias definitions

from .loader import load_history_lines, read_history_file
from .aliases import extract_zsh_aliases, parse_aliases, sync_aliases

__all__ = [
    "load_history_lines",
    "read_history_file",
    "extract_zsh_aliases",
    "parse_aliases",
    "sync_aliases",
]
