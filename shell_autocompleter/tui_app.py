# tui_app.py - Shell Autocompleter TUI Application
# -------------------------------------------------------
# Terminal UI around SuggestSession.
# Features:
#  - Debounced suggestions as you type (light strategies inline, heavy ones merged later)
#  - Up/Down to move the selection, Tab to accept it into the input
#  - Enter runs the selection (or the raw input) and streams its output below
#  - Finished commands are saved to the history store
#  - History tab (Ctrl+R): recent commands with exit codes and their stored output
# The session does all the work; this file only forwards events and renders state.
# -------------------------------------------------------

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional, Sequence

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Footer, Header, Input, Static, TabbedContent, TabPane

from shell_autocompleter.core.ensemble import Ensemble
from shell_autocompleter.core.errors import AutocompleterError
from shell_autocompleter.core.session import DEBOUNCE_WINDOW, MAX_SUGGESTIONS, TICK_RATE, SuggestSession
from shell_autocompleter.history.aliases import extract_zsh_aliases, sync_aliases
from shell_autocompleter.models.embedding import EmbeddingModel
from shell_autocompleter.store.history import import_shell_history
from shell_autocompleter.store.sqlite_store import SqliteStore

logger = logging.getLogger(__name__)

ZSHRC = Path("~/.zshrc")
SUGGEST_TAB = "suggest"
HISTORY_TAB = "history"


class SuggestionPanel(Static):
    """Ranked suggestions, selected row highlighted, source tag dimmed."""

    def format_session(self, session: SuggestSession) -> Text:
        if not session.visible_suggestions:
            return Text("No suggestions", style="dim")
        out = Text()
        for i, s in enumerate(session.visible_suggestions):
            style = "reverse bold" if i == session.selected_index else ""
            out.append(s.text, style=style)
            if s.source:
                out.append(f"  {s.source}", style="dim")
            out.append("\n")
        return out

    def show_session(self, session: SuggestSession) -> None:
        self.update(self.format_session(session))


class OutputPanel(Static):
    """Output of the running (or last finished) command."""

    def show_session(self, session: SuggestSession) -> None:
        if session.is_running:
            header = Text(f"$ {session.running_command}  (running)\n", style="bold yellow")
        elif session.history and session.output_lines:
            last = session.history[0]
            header = Text(f"$ {last.cmd}  (exit code: {last.exit_code})\n", style="bold")
        else:
            self.update("")
            return
        header.append("\n".join(session.output_lines))
        self.update(header)


def exit_label(code: Optional[int]) -> str:
    return "?" if code is None else str(code)


class HistoryList(Static):
    """Recent commands, newest first, as `[exit] command`."""

    def format_session(self, session: SuggestSession) -> Text:
        if not session.history:
            return Text("(no history yet)", style="dim")
        out = Text()
        for i, entry in enumerate(session.history):
            style = "reverse bold" if i == session.selected_history_index else ""
            out.append(f"[{exit_label(entry.exit_code)}] {entry.cmd}\n", style=style)
        return out

    def show_session(self, session: SuggestSession) -> None:
        self.update(self.format_session(session))


class HistoryOutput(Static):
    """Stored output of the selected history entry."""

    def format_session(self, session: SuggestSession) -> Text:
        entry = session.selected_history_entry()
        if entry is None:
            return Text("(no history yet)", style="dim")
        out = Text(f"$ {entry.cmd}  [exit code: {exit_label(entry.exit_code)}]\n", style="bold")
        if entry.output_lines:
            out.append("\n".join(entry.output_lines))
        else:
            out.append("(no output)", style="dim")
        return out

    def show_session(self, session: SuggestSession) -> None:
        self.update(self.format_session(session))


class SuggestApp(App):
    """
    Textual front end. One interval timer drives SuggestSession.tick(); all widgets
    are re-rendered from session state when it changed.

    `history_lines` are the raw (not deduplicated) shell history lines imported into
    the store on startup so repeated commands keep their counts; defaults to the corpus.
    """
    CSS_PATH = "tui_style.css"
    TITLE = "shell autocompleter"

    BINDINGS = [
        Binding("tab", "accept", "Accept", priority=True),
        Binding("up", "select(-1)", "Up", show=False, priority=True),
        Binding("down", "select(1)", "Down", show=False, priority=True),
        Binding("ctrl+r", "toggle_history", "History", priority=True),
        Binding("escape", "quit", "Quit"),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(self,
                 ensemble: Ensemble,
                 corpus: Sequence[str] = (),
                 store: Optional[SqliteStore] = None,
                 max_suggestions: int = MAX_SUGGESTIONS,
                 debounce: float = DEBOUNCE_WINDOW,
                 tick: float = TICK_RATE,
                 history_lines: Optional[Sequence[str]] = None):
        super().__init__()
        self.store = store
        self.tick_rate = tick
        self.session = SuggestSession(ensemble, corpus=corpus, store=store,
                                      max_suggestions=max_suggestions, debounce=debounce)
        self.history_lines = list(history_lines) if history_lines is not None else None
        self._last_render = None

    # UI --------------------------------------------------------------------
    def compose(self) -> ComposeResult:
        yield Header()
        with TabbedContent(initial=SUGGEST_TAB):
            with TabPane("Suggest", id=SUGGEST_TAB):
                yield Input(placeholder="Type a command…  (Enter: run  Tab: accept  Esc: quit)",
                            id="cmd_input")
                yield SuggestionPanel(id="suggestions")
                yield OutputPanel(id="output")
            with TabPane("History", id=HISTORY_TAB):
                with Horizontal():
                    yield HistoryList(id="history_list")
                    yield HistoryOutput(id="history_output")
        yield Static(id="status")
        yield Footer()

    def on_mount(self) -> None:
        self.prepare_store()
        self.session.load_history()
        self.start_learning()
        self.set_interval(self.tick_rate, self.tick_session)
        self.query_one(Input).focus()
        self.render_state(force=True)

    # startup ---------------------------------------------------------------
    def prepare_store(self) -> None:
        """Seed the store with the loaded shell history and the aliases from ~/.zshrc."""
        if self.store is None:
            return
        lines = self.history_lines if self.history_lines is not None else self.session.corpus
        try:
            n = import_shell_history(self.store, lines)
            aliases = extract_zsh_aliases(ZSHRC) if ZSHRC.expanduser().exists() else []
            sync_aliases(self.store, aliases)
            logger.info("imported %d history commands, %d aliases", n, len(aliases))
        except (AutocompleterError, OSError, sqlite3.Error) as e:
            logger.warning("failed to prepare history store: %s", e)

    def start_learning(self) -> None:
        for model in self.session.ensemble.heavy_models():
            if isinstance(model, EmbeddingModel):
                lines = list(self.session.corpus)
                self.run_worker(lambda m=model: m.learn(lines),
                                thread=True, exclusive=False, exit_on_error=False,
                                name="embedding-learn")

    @property
    def history_active(self) -> bool:
        return self.query_one(TabbedContent).active == HISTORY_TAB

    # events ----------------------------------------------------------------
    def on_input_changed(self, event: Input.Changed) -> None:
        self.session.set_input(event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        cmd = self.session.run_command()
        status = self.query_one("#status", Static)
        if cmd is None:
            if self.session.is_running:
                status.update(Text("a command is still running", style="yellow"))
            return
        status.update(Text(f"running: {cmd}", style="green"))
        self.render_state(force=True)

    def tick_session(self) -> None:
        self.session.tick()
        self.render_state()

    def on_unmount(self) -> None:
        self.session.shutdown()

    # actions ---------------------------------------------------------------
    def action_accept(self) -> None:
        """Tab = copy the selected suggestion into the input."""
        if self.history_active:
            return
        text = self.session.accept_selected()
        if text is None:
            return
        inp = self.query_one(Input)
        inp.value = text
        inp.cursor_position = len(text)
        self.render_state(force=True)

    def action_select(self, delta: int) -> None:
        if self.history_active:
            self.session.move_history_selection(delta)
        else:
            self.session.move_selection(delta)
        self.render_state(force=True)

    def action_toggle_history(self) -> None:
        tabs = self.query_one(TabbedContent)
        if tabs.active == HISTORY_TAB:
            tabs.active = SUGGEST_TAB
            self.query_one(Input).focus()
        else:
            tabs.active = HISTORY_TAB
            self.set_focus(None)
        self.render_state(force=True)

    # rendering -------------------------------------------------------------
    def render_state(self, force: bool = False) -> None:
        s = self.session
        snapshot = (tuple(s.visible_suggestions), s.selected_index,
                    len(s.output_lines), s.running_command,
                    len(s.history), s.selected_history_index)
        if not force and snapshot == self._last_render:
            return
        self._last_render = snapshot
        self.query_one(SuggestionPanel).show_session(s)
        self.query_one(OutputPanel).show_session(s)
        self.query_one(HistoryList).show_session(s)
        self.query_one(HistoryOutput).show_session(s)
