# threaded_runner.py - helpers to run work in threads and hand results back through queues.
#  - run_parallel: fan out zero-arg callables, collect results in submission order
#  - spawn_command: run a shell command in the background, stream its output lines

from __future__ import annotations

import logging
import queue
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import IO, Callable, Iterable, List, NamedTuple, Optional, Union

logger = logging.getLogger(__name__)

SHELL = "/bin/sh"
SPAWN_FAILED_EXIT_CODE = 127


def run_parallel(tasks: Iterable[Callable], max_workers: int = 4) -> List:
    """
    Run callables (no-arg functions) in a small thread pool and return their results
    in the order the tasks were given. Each task should be a zero-argument lambda or
    function; exceptions propagate from the first failing task.
    """
    tasks = list(tasks)
    if not tasks:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks)))) as ex:
        futs = [ex.submit(t) for t in tasks]
        return [f.result() for f in futs]


# Command execution -------------------------------------------------------------

class ExecLine(NamedTuple):
    """One line of stdout/stderr from a running command."""
    text: str


class ExecDone(NamedTuple):
    """Final message of a command run."""
    exit_code: int


ExecMsg = Union[ExecLine, ExecDone]


def _stream_reader(stream: Optional[IO[bytes]], out: "queue.Queue[ExecMsg]") -> None:
    """Push every line of `stream` onto `out` (lossy utf-8)."""
    if stream is None:
        return
    try:
        for raw in iter(stream.readline, b""):
            out.put(ExecLine(raw.decode("utf-8", errors="replace").rstrip("\r\n")))
    except (OSError, ValueError) as e:
        out.put(ExecLine(f"read error: {e}"))
    finally:
        stream.close()


def _run_command(cmdline: str, out: "queue.Queue[ExecMsg]") -> None:
    try:
        proc = subprocess.Popen(
            [SHELL, "-lc", cmdline],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
        )
    except OSError as e:
        out.put(ExecLine(f"spawn error: {e}"))
        out.put(ExecDone(SPAWN_FAILED_EXIT_CODE))
        return

    readers = [
        threading.Thread(target=_stream_reader, args=(proc.stdout, out), daemon=True),
        threading.Thread(target=_stream_reader, args=(proc.stderr, out), daemon=True),
    ]
    for t in readers:
        t.start()
    code = proc.wait()
    for t in readers:
        t.join()
    logger.debug("command %r exited with %s", cmdline, code)
    out.put(ExecDone(code))


def spawn_command(cmdline: str, out: Optional["queue.Queue[ExecMsg]"] = None) -> "queue.Queue[ExecMsg]":
    """
    Run `cmdline` in a subshell on a background thread.
    Returns the queue that receives ExecLine messages followed by exactly one ExecDone.
    """
    out = out if out is not None else queue.Queue()
    threading.Thread(target=_run_command, args=(cmdline, out), daemon=True).start()
    return out
