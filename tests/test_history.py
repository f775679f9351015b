# tests/test_history.py
# run-history persistence, shell history loading and alias parsing

import re

import pytest

from shell_autocompleter.core.errors import HistoryLoadError
from shell_autocompleter.history.aliases import extract_zsh_aliases, parse_aliases, sync_aliases
from shell_autocompleter.history.loader import (
    default_history_files,
    load_history_lines,
    parse_history_text,
    read_history_file,
)
from shell_autocompleter.store.history import (
    MAX_OUTPUT_LEN,
    TRUNC_SUFFIX,
    format_output,
    generate_session_id,
    import_shell_history,
    load_recent_history,
    parse_output,
    persist_history_entry,
    truncate_output,
)
from shell_autocompleter.store.sqlite_store import SqliteStore


# persistence ----------------------------------------------------------------

def test_persist_inserts_then_bumps_count(store):
    persist_history_entry(store, "  make test ", ["ok"], 0, "tui-1-1")
    persist_history_entry(store, "make test", ["fail"], 2, "tui-1-2")
    rows = store.query("SELECT command, count, source, session_id, output FROM history")
    assert rows == [("make test", 2, "tui", "tui-1-2", "fail\n(exit code: 2)")]


def test_persist_ignores_blank_command(store):
    persist_history_entry(store, "   ", [], 0, "s")
    assert store.query("SELECT COUNT(*) FROM history") == [(0,)]


def test_format_and_parse_output():
    text = format_output(["a", "b"], 3)
    assert text == "a\nb\n(exit code: 3)"
    entry = parse_output(text)
    assert entry.output_lines == ["a", "b"]
    assert entry.exit_code == 3
    assert format_output([], 0) == "(exit code: 0)"


def test_truncate_output_caps_bytes():
    long = "é" * MAX_OUTPUT_LEN
    out = truncate_output(long)
    assert out.endswith(TRUNC_SUFFIX)
    assert len(out.encode("utf-8")) <= MAX_OUTPUT_LEN
    assert truncate_output("short") == "short"


def test_load_recent_history_newest_first(store):
    persist_history_entry(store, "first", ["1"], 0, "s")
    persist_history_entry(store, "second", [], 1, "s")
    entries = load_recent_history(store, limit=10)
    assert [e.cmd for e in entries] == ["second", "first"]
    assert entries[0].exit_code == 1
    assert entries[1].output_lines == ["1"]


def test_load_recent_history_without_table():
    bare = SqliteStore.open_memory()
    assert load_recent_history(bare) == []
    bare.close()


def test_import_shell_history_counts_and_is_idempotent(store):
    n = import_shell_history(store, ["ls", "ls", "git status", "  ", "ls"])
    assert n == 2
    import_shell_history(store, ["ls"])
    rows = dict(store.query("SELECT command, count FROM history"))
    assert rows == {"ls": 3, "git status": 1}
    assert store.query("SELECT DISTINCT source FROM history") == [("shell",)]


def test_session_id_format():
    assert re.match(r"^tui-\d+-\d+$", generate_session_id())


# loader ---------------------------------------------------------------------

def test_parse_zsh_extended_history_and_continuations():
    text = ": 1700000000:0;git status\n: 1700000001:0;echo one \\\ntwo\nls -la\n\n"
    assert parse_history_text(text) == ["git status", "echo one two", "ls -la"]


def test_load_history_lines_dedupes(tmp_path):
    f = tmp_path / "hist"
    f.write_text("ls\nls\npwd\n", encoding="utf-8")
    assert load_history_lines([f]) == ["ls", "pwd"]
    assert load_history_lines([f], unique=False) == ["ls", "ls", "pwd"]


def test_read_history_file_is_lossy(tmp_path):
    f = tmp_path / "hist"
    f.write_bytes(b"echo \xff\n")
    assert read_history_file(f) == ["echo �"]


def test_missing_explicit_file_is_fatal(tmp_path):
    with pytest.raises(HistoryLoadError):
        load_history_lines([tmp_path / "nope"])


def test_default_files_skip_missing(tmp_path):
    (tmp_path / ".bash_history").write_text("make\n", encoding="utf-8")
    assert load_history_lines(home=tmp_path) == ["make"]
    assert [p.name for p in default_history_files(tmp_path)] == \
        [".zsh_history", ".bash_history", ".fish_history"]


# aliases --------------------------------------------------------------------

def test_parse_aliases():
    text = """
# comment
alias gs='git status'
alias ll="ls -la"
  alias k="kubectl \\"ctx\\""
export FOO=bar
"""
    assert parse_aliases(text) == [
        {"name": "gs", "cmd": "git status"},
        {"name": "ll", "cmd": "ls -la"},
        {"name": "k", "cmd": 'kubectl "ctx"'},
    ]


def test_extract_and_sync_aliases(tmp_path, store):
    rc = tmp_path / ".zshrc"
    rc.write_text("alias gs='git status'\n", encoding="utf-8")
    assert sync_aliases(store, extract_zsh_aliases(rc)) == 1
    sync_aliases(store, [{"name": "gs", "cmd": "git switch"}])
    assert store.query("SELECT name, cmd FROM aliases") == [("gs", "git switch")]
