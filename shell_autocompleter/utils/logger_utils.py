# logger_utils.py -  logging setup and performance metrics, timestamps etc

import logging
import sys
import time
from pathlib import Path
from typing import Optional, Union

from shell_autocompleter.utils.config_manager import cache_dir

LOG_FORMAT = "[%(asctime)s] %(levelname)-7s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_NAME = "autocompleter.log"

_metrics_logger = logging.getLogger("shell_autocompleter.metrics")


class Log:
    """Logging setup and metrics for the whole package."""

    @staticmethod
    def configure(level: Union[str, int] = "INFO",
                  path: Optional[Path] = None,
                  stream=None) -> logging.Logger:
        """
        Attach a file handler (and optionally a stream handler) to the package logger.
        Each entry is written as: [YYYY-MM-DD HH:MM:SS] LEVEL   | logger | message
        Calling it twice replaces the handlers instead of duplicating them.
        """
        root = logging.getLogger("shell_autocompleter")
        root.setLevel(level if isinstance(level, int) else level.upper())
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()

        fmt = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        log_path = Path(path) if path else cache_dir() / LOG_FILE_NAME
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(log_path, encoding="utf-8")
            fh.setFormatter(fmt)
            root.addHandler(fh)
        except OSError as e:
            print(f"cannot open log file {log_path}: {e}", file=sys.stderr)

        if stream is not None:
            sh = logging.StreamHandler(stream)
            sh.setFormatter(fmt)
            root.addHandler(sh)
        root.propagate = False
        return root

    @staticmethod
    def metric(tag, value, unit=""):
        """
        Record a metric (like timing, counts, or performance stats).
        Example: session.light_refresh done: 0.002s
        """
        _metrics_logger.debug("%s: %s%s", tag, value, unit)

    @staticmethod
    def time_block(label):
        """
        Helper for measuring execution time of a code block.
        To use:
            with Log.time_block("search"):
                do_some_work()
        It automatically logs how long the block took.
        """
        return _Timer(label)


class _Timer:
    """Context manager used internally to measure time for a code block."""
    def __init__(self, label):
        self.label = label
        self.start = time.perf_counter()
        self.elapsed = 0.0

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        """When exiting the 'with' block, record how long it took as a metric."""
        self.elapsed = time.perf_counter() - self.start
        Log.metric(f"{self.label} done", round(self.elapsed, 6), "s")
