"""
cli.py - command line entry point
Sub-commands:
- search: non-interactive ranking of history lines for one query, one suggestion per line
- tui:    the interactive suggestion loop (Textual)
Uses Rich for output and diagnostics, the JSON Config for defaults.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from shell_autocompleter import __version__
from shell_autocompleter.core.ensemble import Ensemble, EnsembleBuilder
from shell_autocompleter.core.errors import HistoryLoadError
from shell_autocompleter.history.loader import dedupe, load_history_lines
from shell_autocompleter.models.alias import AliasModel
from shell_autocompleter.models.embedding import EmbeddingModel
from shell_autocompleter.models.freq import FreqModel
from shell_autocompleter.models.fuzzy_history import FuzzyHistoryModel
from shell_autocompleter.models.llm import LlmConfig, LlmModel
from shell_autocompleter.models.prefix import PrefixModel
from shell_autocompleter.store.sqlite_store import SqliteStore, open_default
from shell_autocompleter.utils.config_manager import Config
from shell_autocompleter.utils.logger_utils import Log

# initialise consoles for rich output
console = Console()
err_console = Console(stderr=True)


def build_ensemble(corpus: Sequence[str],
                   store: Optional[SqliteStore] = None,
                   enable_embedding: bool = False,
                   embedding_model: Optional[str] = None,
                   enable_llm: bool = False,
                   llm_model: Optional[str] = None) -> Ensemble:
    """
    Wire the strategies:
    - fuzzy history baseline over the loaded corpus (always)
    - prefix / frequency / alias lookups when a store is available
    - embedding and language-model strategies as heavy models when enabled
    """
    builder = EnsembleBuilder().with_baseline(FuzzyHistoryModel(corpus))
    if store is not None:
        builder = (builder
                   .with_light_model(PrefixModel(store))
                   .with_light_model(FreqModel(store))
                   .with_light_model(AliasModel.with_sql_store(store)))
        if enable_embedding:
            builder = builder.with_heavy_model(EmbeddingModel.from_env(store, embedding_model))
    if enable_llm:
        builder = builder.with_heavy_model(LlmModel.from_config(LlmConfig(model_path=llm_model or "")))
    return builder.build()


def split_files(values: Optional[List[str]]) -> List[Path]:
    """--file may be repeated and each value may hold several paths separated by ';'."""
    out: List[Path] = []
    for v in values or []:
        out.extend(Path(p).expanduser() for p in v.split(";") if p.strip())
    return out


def open_store(args, cfg: Config) -> Optional[SqliteStore]:
    if getattr(args, "no_db", False):
        return None
    return open_default(args.db or cfg.db_path())


# ---------------------------------
# Sub-commands
# ---------------------------------
def cmd_search(args, cfg: Config) -> int:
    files = split_files(args.file)
    if not files:
        err_console.print("[red]Please specify at least one --file[/red]")
        return 2
    try:
        lines = load_history_lines(files, unique=args.unique)
    except HistoryLoadError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}", highlight=False)
        return 1

    store = open_store(args, cfg)
    ensemble = build_ensemble(
        lines, store,
        enable_embedding=args.enable_embedding,
        embedding_model=args.embedding_model,
        enable_llm=args.enable_llm,
        llm_model=args.llm_model,
    )
    with Log.time_block("cli.search"):
        suggestions = ensemble.predict_all(args.query)
    for s in suggestions[:args.top]:
        console.print(s.text, markup=False, highlight=False, soft_wrap=True)
    if store is not None:
        store.close()
    return 0


def cmd_tui(args, cfg: Config) -> int:
    # textual is only needed for the interactive mode
    from shell_autocompleter.tui_app import SuggestApp

    files = split_files(args.file)
    try:
        raw_lines = load_history_lines(files, unique=False)
    except HistoryLoadError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}", highlight=False)
        return 1
    # the store import counts repeats, the corpus honours --unique
    lines = dedupe(raw_lines) if args.unique else list(raw_lines)

    store = open_store(args, cfg)
    ensemble = build_ensemble(
        lines, store,
        enable_embedding=args.enable_embedding,
        embedding_model=args.embedding_model,
        enable_llm=args.enable_llm,
        llm_model=args.llm_model,
    )
    app = SuggestApp(
        ensemble,
        corpus=lines,
        store=store,
        max_suggestions=args.top,
        debounce=cfg["debounce_ms"] / 1000.0,
        tick=cfg["tick_ms"] / 1000.0,
        history_lines=raw_lines,
    )
    app.run()
    if store is not None:
        store.close()
    return 0


# ---------------------------------
# Argument parsing
# ---------------------------------
def _add_common(p: argparse.ArgumentParser, cfg: Config, file_required: bool) -> None:
    p.add_argument("-f", "--file", action="append", required=file_required,
                   help="history file to load; repeatable, ';' separates several paths")
    p.add_argument("-n", "--top", type=int, default=cfg["max_suggestions"],
                   help="max suggestions to show")
    p.add_argument("--unique", dest="unique", action="store_true", default=cfg["unique"],
                   help="remove duplicate lines (default from config)")
    p.add_argument("--no-unique", dest="unique", action="store_false",
                   help="keep duplicate lines")
    p.add_argument("--db", default=None, help="sqlite history store path")
    p.add_argument("--no-db", action="store_true", help="do not open the history store")
    p.add_argument("--enable-embedding", action="store_true", default=cfg["enable_embedding"])
    p.add_argument("--embedding-model", default=cfg["embedding_model"])
    p.add_argument("--enable-llm", action="store_true", default=cfg["enable_llm"])
    p.add_argument("--llm-model", default=cfg["llm_model"])


def build_parser(cfg: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shell-autocompleter",
        description="History, alias, embedding and LLM suggestions for shell commands",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=cfg["log_level"])
    parser.add_argument("-v", "--verbose", action="store_true", help="also log to stderr")
    sub = parser.add_subparsers(dest="cmd")

    search = sub.add_parser("search", help="non-interactive ranked search")
    _add_common(search, cfg, file_required=True)
    search.add_argument("-q", "--query", required=True)
    search.set_defaults(func=cmd_search)

    tui = sub.add_parser("tui", help="launch the interactive suggestion UI")
    _add_common(tui, cfg, file_required=False)
    tui.set_defaults(func=cmd_tui)
    return parser


def main(argv: Optional[List[str]] = None, cfg: Optional[Config] = None) -> int:
    cfg = cfg if cfg is not None else Config()
    parser = build_parser(cfg)
    args = parser.parse_args(argv)
    Log.configure(args.log_level, stream=sys.stderr if args.verbose else None)

    if not getattr(args, "func", None):
        console.print("Try: [bold]shell-autocompleter tui[/bold]\n"
                      "  or: [bold]shell-autocompleter search --file ~/.zsh_history --query \"git st\"[/bold]")
        return 0
    return args.func(args, cfg)


if __name__ == "__main__":
    sys.exit(main())
