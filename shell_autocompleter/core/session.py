# shell_autocompleter/core/session.py
"""
SuggestSession - interactive state and the orchestration around the Ensemble.

One loop thread owns everything in here and calls tick() at a fixed rate:
 - edits only mark the input dirty; refresh happens once the debounce window passed
 - light strategies run inline on refresh and replace the visible list at once
 - heavy strategies run on a thread pool, one generation per refresh; results come
   back through a queue tagged with the query they were computed for, and anything
   not matching the current query is dropped
 - commands run through spawn_command; their transcript is kept and persisted

Background threads never touch visible_suggestions or selected_index.
"""

from __future__ import annotations

import logging
import queue
import sqlite3
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

from shell_autocompleter.core.ensemble import Ensemble
from shell_autocompleter.core.errors import AutocompleterError, EnsembleError
from shell_autocompleter.core.fuzzy import rank_corpus
from shell_autocompleter.core.protocols import Predictor, StoreProtocol
from shell_autocompleter.core.suggestion import Suggestion
from shell_autocompleter.store.history import (
    HistoryEntry,
    generate_session_id,
    load_recent_history,
    persist_history_entry,
)
from shell_autocompleter.utils.logger_utils import Log
from shell_autocompleter.utils.threaded_runner import ExecDone, ExecLine, ExecMsg, spawn_command

logger = logging.getLogger(__name__)

DEBOUNCE_WINDOW = 0.3   # seconds
TICK_RATE = 0.033       # seconds
MAX_SUGGESTIONS = 20


class HeavyResult(NamedTuple):
    """One heavy strategy's answer, tagged with the query it was computed for."""
    query: str
    source: str
    suggestions: List[Suggestion]


def merge_positional(visible: Sequence[Suggestion],
                     incoming: Sequence[Suggestion],
                     limit: int) -> List[Suggestion]:
    """
    Fold late results into an already ranked list.

    Visible entries score by rank position (len - index); an incoming suggestion adds
    its raw score to the entry with the same text or is inserted with it. Stable sort,
    so equal scores keep their previous order.
    """
    n = len(visible)
    merged: List[List] = [[s.text, float(n - i), s.source] for i, s in enumerate(visible)]
    index: Dict[str, int] = {s.text: i for i, s in enumerate(visible)}
    for s in incoming:
        pos = index.get(s.text)
        if pos is None:
            index[s.text] = len(merged)
            merged.append([s.text, float(s.score), s.source])
        else:
            merged[pos][1] += float(s.score)
    merged.sort(key=lambda e: -e[1])
    return [Suggestion(text=t, score=sc, source=src) for t, sc, src in merged[:limit]]


class SuggestSession:
    """
    Usage:
        session = SuggestSession(ensemble, corpus=lines, store=store)
        session.set_input("git s")
        ...
        session.tick()   # every TICK_RATE seconds
    """

    def __init__(self,
                 ensemble: Ensemble,
                 corpus: Sequence[str] = (),
                 store: Optional[StoreProtocol] = None,
                 max_suggestions: int = MAX_SUGGESTIONS,
                 debounce: float = DEBOUNCE_WINDOW,
                 clock: Callable[[], float] = time.monotonic,
                 executor: Optional[Executor] = None,
                 session_id: Optional[str] = None):
        self.ensemble = ensemble
        # shared with the fuzzy baseline when a list is passed in
        self.corpus = corpus if isinstance(corpus, list) else list(corpus)
        self.store = store
        self.max_suggestions = max(1, int(max_suggestions))
        self.debounce = float(debounce)
        self.clock = clock
        self.session_id = session_id or generate_session_id()

        # input / ranking state (loop thread only)
        self.input = ""
        self.last_input_time = clock()
        self.pending_refresh = False
        self.visible_suggestions: List[Suggestion] = []
        self.selected_index = 0

        # heavy generation
        self.in_flight_heavy_tasks: List[Future] = []
        self.pending_heavy_query: Optional[str] = None
        self.heavy_results: "queue.Queue[HeavyResult]" = queue.Queue()
        self._executor = executor
        self._owns_executor = executor is None

        # command execution
        self.output_lines: List[str] = []
        self.running_command: Optional[str] = None
        self._exec_queue: Optional["queue.Queue[ExecMsg]"] = None
        self.history: List[HistoryEntry] = []
        self.selected_history_index = 0

        # counters
        self.refresh_count = 0
        self.fallback_count = 0
        self.merged_count = 0
        self.dropped_count = 0

    # ---------------------------------
    # Edit + debounce
    # ---------------------------------
    def set_input(self, text: str) -> None:
        if text == self.input:
            return
        self.input = text
        self.mark_input_changed()

    def mark_input_changed(self) -> None:
        """Record an edit. No prediction work happens here."""
        self.output_lines.clear()
        self.last_input_time = self.clock()
        self.pending_refresh = True

    def should_refresh(self) -> bool:
        return self.pending_refresh and (self.clock() - self.last_input_time) >= self.debounce

    # ---------------------------------
    # Light refresh
    # ---------------------------------
    def refresh_suggestions(self) -> None:
        """Rank the current input with the light strategies, then start a heavy generation."""
        self.refresh_count += 1
        self.pending_refresh = False
        text = self.input

        if not text.strip():
            self.cancel_heavy_tasks()
            self.pending_heavy_query = None
            self._set_visible([])
            return

        with Log.time_block("session.light_refresh"):
            try:
                ranked = self.ensemble.predict_light(text)
            except EnsembleError as e:
                logger.warning("light ensemble failed, falling back to fuzzy corpus match: %s", e)
                self.fallback_count += 1
                ranked = self.fuzzy_fallback(text)
        self._set_visible(ranked[:self.max_suggestions])
        self.dispatch_heavy(text)

    def fuzzy_fallback(self, text: str) -> List[Suggestion]:
        return [Suggestion.with_source(line, score, "history")
                for score, line in rank_corpus(self.corpus, text, self.max_suggestions)]

    def _set_visible(self, suggestions: List[Suggestion]) -> None:
        self.visible_suggestions = suggestions
        self._clamp_selection()

    def _clamp_selection(self) -> None:
        n = len(self.visible_suggestions)
        self.selected_index = 0 if n == 0 else max(0, min(self.selected_index, n - 1))

    # ---------------------------------
    # Heavy generation
    # ---------------------------------
    def _get_executor(self, workers: int) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=max(1, workers),
                                                thread_name_prefix="heavy")
        return self._executor

    def dispatch_heavy(self, query: str) -> None:
        """Cancel the previous generation and start one task per heavy strategy for `query`."""
        self.cancel_heavy_tasks()
        self.pending_heavy_query = query
        models = self.ensemble.heavy_models()
        if not models:
            return
        ex = self._get_executor(len(models))
        for model in models:
            self.in_flight_heavy_tasks.append(ex.submit(self._run_heavy, model, query))
        logger.debug("dispatched %d heavy tasks for %r", len(models), query)

    def cancel_heavy_tasks(self) -> None:
        # advisory: a task already running finishes and its result is dropped at merge time
        for fut in self.in_flight_heavy_tasks:
            fut.cancel()
        self.in_flight_heavy_tasks = []

    def _run_heavy(self, model: Predictor, query: str) -> None:
        """Worker side. Only talks to the loop through heavy_results."""
        name = type(model).__name__
        try:
            suggestions = model.predict(query)
        except AutocompleterError as e:
            logger.debug("heavy strategy %s failed for %r: %s", name, query, e)
            return
        if suggestions:
            self.heavy_results.put(HeavyResult(query, name, list(suggestions)))

    def _prune_finished(self) -> None:
        still_running = []
        for fut in self.in_flight_heavy_tasks:
            if not fut.done():
                still_running.append(fut)
            elif not fut.cancelled() and fut.exception() is not None:
                logger.warning("heavy task crashed: %r", fut.exception())
        self.in_flight_heavy_tasks = still_running

    def poll_heavy_results(self) -> int:
        """Drain the result queue without blocking; returns how many batches were merged."""
        merged = 0
        while True:
            try:
                result = self.heavy_results.get_nowait()
            except queue.Empty:
                break
            if result.query != self.pending_heavy_query or result.query != self.input:
                self.dropped_count += 1
                logger.debug("dropping stale %s result for %r", result.source, result.query)
                continue
            self.merge_heavy(result.suggestions)
            merged += 1
        self._prune_finished()
        self.merged_count += merged
        return merged

    def merge_heavy(self, incoming: Sequence[Suggestion]) -> None:
        self._set_visible(merge_positional(self.visible_suggestions, incoming, self.max_suggestions))

    def join_heavy_tasks(self, timeout: Optional[float] = None) -> bool:
        """Block until the current generation finished. Not for the loop thread."""
        if not self.in_flight_heavy_tasks:
            return True
        _, not_done = wait(self.in_flight_heavy_tasks, timeout=timeout)
        return not not_done

    # ---------------------------------
    # Loop
    # ---------------------------------
    def tick(self) -> None:
        """One loop iteration: debounce check, heavy drain, command output drain."""
        if self.should_refresh():
            self.refresh_suggestions()
        self.poll_heavy_results()
        self.poll_command_output()

    # ---------------------------------
    # Selection
    # ---------------------------------
    def move_selection(self, delta: int) -> None:
        self.selected_index += delta
        self._clamp_selection()

    def selected_suggestion(self) -> Optional[Suggestion]:
        if not self.visible_suggestions:
            return None
        return self.visible_suggestions[self.selected_index]

    def accept_selected(self) -> Optional[str]:
        """Copy the selected suggestion into the input."""
        s = self.selected_suggestion()
        if s is None:
            return None
        self.set_input(s.text)
        return s.text

    def move_history_selection(self, delta: int) -> None:
        self.selected_history_index += delta
        self._clamp_history_selection()

    def _clamp_history_selection(self) -> None:
        n = len(self.history)
        self.selected_history_index = 0 if n == 0 else max(0, min(self.selected_history_index, n - 1))

    def selected_history_entry(self) -> Optional[HistoryEntry]:
        if not self.history:
            return None
        return self.history[self.selected_history_index]

    def command_to_run(self) -> str:
        s = self.selected_suggestion()
        text = s.text if s is not None else self.input
        return text if text.strip() else ""

    # ---------------------------------
    # Command execution
    # ---------------------------------
    def run_command(self, cmdline: Optional[str] = None) -> Optional[str]:
        """Start the selected suggestion (or raw input). One command at a time."""
        cmd = cmdline if cmdline is not None else self.command_to_run()
        if not cmd.strip() or self.running_command is not None:
            return None
        self.output_lines = []
        self.running_command = cmd
        self._exec_queue = spawn_command(cmd)
        logger.info("running %r", cmd)
        return cmd

    @property
    def is_running(self) -> bool:
        return self.running_command is not None

    def poll_command_output(self) -> Optional[HistoryEntry]:
        """Drain command output; returns the finished entry on the tick the command exits."""
        if self._exec_queue is None:
            return None
        while True:
            try:
                msg = self._exec_queue.get_nowait()
            except queue.Empty:
                return None
            if isinstance(msg, ExecLine):
                self.output_lines.append(msg.text)
            elif isinstance(msg, ExecDone):
                return self._finish_command(msg.exit_code)

    def _finish_command(self, exit_code: int) -> HistoryEntry:
        entry = HistoryEntry(cmd=self.running_command or "", exit_code=exit_code,
                             output_lines=list(self.output_lines))
        self.history.insert(0, entry)
        self.selected_history_index = 0
        self.running_command = None
        self._exec_queue = None
        if self.store is not None:
            try:
                persist_history_entry(self.store, entry.cmd, entry.output_lines,
                                      exit_code, self.session_id)
            except (AutocompleterError, sqlite3.Error) as e:
                logger.warning("failed to save %r to history: %s", entry.cmd, e)
        if entry.cmd.strip() and entry.cmd.strip() not in self.corpus:
            self.corpus.insert(0, entry.cmd.strip())
        return entry

    def load_history(self, limit: int = 100) -> List[HistoryEntry]:
        if self.store is not None:
            self.history = load_recent_history(self.store, limit)
        self._clamp_history_selection()
        return self.history

    def shutdown(self) -> None:
        self.cancel_heavy_tasks()
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=False)
            self._executor = None

    def __repr__(self):
        return (f"SuggestSession(input={self.input!r}, visible={len(self.visible_suggestions)}, "
                f"in_flight={len(self.in_flight_heavy_tasks)})")
