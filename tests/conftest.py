# tests/conftest.py
# shared stubs and fixtures

import logging
from concurrent.futures import Future

import pytest

from shell_autocompleter.core.errors import PredictionError
from shell_autocompleter.core.suggestion import Suggestion
from shell_autocompleter.store.sqlite_store import SqliteStore


class StubModel:
    """Predictor returning fixed {text: score} results and counting calls."""

    def __init__(self, results=None, weight=1.0, source="stub", fail=False):
        self.results = dict(results or {})
        self._weight = weight
        self.source = source
        self.fail = fail
        self.calls = []

    def predict(self, text):
        self.calls.append(text)
        if self.fail:
            raise PredictionError("stub failure")
        return [Suggestion.with_source(t, s, self.source) for t, s in self.results.items()]

    def weight(self):
        return self._weight


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ManualExecutor:
    """Executor that only runs submitted work when the test says so."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        fut = Future()
        self.jobs.append((fut, fn, args, kwargs))
        return fut

    def run(self, index):
        fut, fn, args, kwargs = self.jobs[index]
        # runs even when cancelled, like a task that had already started
        result = fn(*args, **kwargs)
        if not fut.cancelled():
            fut.set_result(result)
        return result

    def run_all(self):
        for i in range(len(self.jobs)):
            self.run(i)

    def shutdown(self, wait=True):
        pass


@pytest.fixture
def store():
    s = SqliteStore.open_memory(migrate=True)
    yield s
    s.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo Log.configure() so caplog keeps seeing package records."""
    yield
    pkg = logging.getLogger("shell_autocompleter")
    for h in list(pkg.handlers):
        pkg.removeHandler(h)
        h.close()
    pkg.propagate = True
    pkg.setLevel(logging.NOTSET)
