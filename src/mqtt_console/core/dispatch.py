"""
Control-thread dispatcher.

Background threads (process pumps, the stdin reader) never mutate shared
state themselves; they post callbacks here and the control thread runs them
in arrival order.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Dispatcher:
    def __init__(self) -> None:
        self._queue: "queue.SimpleQueue[tuple[Callable[..., Any], tuple[Any, ...]]]" = queue.SimpleQueue()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Thread-safe. fn(*args) runs later on the control thread."""
        self._queue.put((fn, args))

    def pending(self) -> int:
        return self._queue.qsize()

    def _run_one(self, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("Dispatched callback failed: %r", fn)

    def drain(self) -> int:
        """Run every callback queued so far (and any they enqueue). Returns the count run."""
        n = 0
        while True:
            try:
                fn, args = self._queue.get_nowait()
            except queue.Empty:
                return n
            self._run_one(fn, args)
            n += 1

    def run_until(self, stop: threading.Event, *, poll_s: float = 0.1) -> None:
        while not stop.is_set():
            try:
                fn, args = self._queue.get(timeout=poll_s)
            except queue.Empty:
                continue
            self._run_one(fn, args)
        self.drain()
