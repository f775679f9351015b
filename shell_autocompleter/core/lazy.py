# shell_autocompleter/core/lazy.py
# Initialise-once cell for slow inference backends.

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from shell_autocompleter.core.errors import BackendUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LazyBackend(Generic[T]):
    """
    Runs `factory` at most once per process, on first use, under a lock.

    A failed attempt is remembered: later calls to get() return None straight away
    and the failure is logged only once. There is no retry.
    """

    def __init__(self, name: str, factory: Callable[[], T]):
        self.name = name
        self._factory = factory
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._attempted = False
        self._error: Optional[BaseException] = None

    def get(self) -> Optional[T]:
        with self._lock:
            if not self._attempted:
                self._attempted = True
                try:
                    self._value = self._factory()
                except (BackendUnavailableError, OSError) as e:
                    self._error = e
                    logger.warning("%s backend unavailable, disabled for this session: %s",
                                   self.name, e)
            return self._value

    @property
    def attempted(self) -> bool:
        return self._attempted

    @property
    def failed(self) -> bool:
        return self._error is not None

    def __repr__(self):
        state = "failed" if self.failed else ("ready" if self._attempted else "pending")
        return f"LazyBackend({self.name!r}, {state})"
