"""
Pytest configuration and shared fixtures
"""
import os
import queue
import sys
import threading
from typing import Optional

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from mqtt_console.config import ClientConfig  # noqa: E402
from mqtt_console.core.runner import ExitStatus  # noqa: E402
from mqtt_console.errors import SpawnError  # noqa: E402

_EOF = object()


class FakeProcess:
    """
    Stand-in for ManagedProcess. Lines are fed by the test with emit();
    finish() ends the stream with an exit code, stop() ends it as stopped.
    """

    def __init__(self, pid: int, argv):
        self.handle = pid
        self.argv = list(argv)
        self.stop_calls = 0
        self._q: "queue.Queue" = queue.Queue()
        self._code: Optional[int] = None
        self._stopped = False
        self._done = threading.Event()

    @property
    def stop_requested(self) -> bool:
        return self._stopped

    def emit(self, *lines: str) -> None:
        for line in lines:
            self._q.put(line)

    def finish(self, code: int = 0) -> None:
        self._code = code
        self._q.put(_EOF)

    def lines(self):
        while True:
            item = self._q.get()
            if item is _EOF:
                return
            yield item

    def wait(self) -> ExitStatus:
        self._done.wait(timeout=5)
        return ExitStatus(code=self._code, stopped=self._stopped)

    def stop(self) -> None:
        self.stop_calls += 1
        if self._stopped or self._done.is_set():
            return
        self._stopped = True
        self._code = -15
        self._q.put(_EOF)

    def _mark_done(self) -> None:
        self._done.set()


class FakeRunner:
    def __init__(self):
        self.started: list[FakeProcess] = []
        self.fail_with: Optional[str] = None
        self._next_pid = 1000

    def start(self, argv, *, capture_output: bool = True):
        if self.fail_with:
            raise SpawnError(list(argv), self.fail_with)
        self._next_pid += 1
        proc = FakeProcess(self._next_pid, argv)
        # wait() returns once the stream has ended
        original_lines = proc.lines

        def lines():
            try:
                yield from original_lines()
            finally:
                proc._mark_done()

        proc.lines = lines
        if not capture_output:
            proc.finish(0)
            proc._mark_done()
        self.started.append(proc)
        return proc


@pytest.fixture
def cfg():
    return ClientConfig()


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def session(cfg, fake_runner, tmp_path):
    from mqtt_console.session import Session
    from mqtt_console.surfaces import SurfaceProvider

    out = open(tmp_path / "out.txt", "w", encoding="utf-8")
    s = Session(cfg, runner=fake_runner, provider=SurfaceProvider(out, open_windows=False))
    yield s
    s.shutdown()
    out.close()


def settle(session, sub=None, timeout: float = 2.0) -> None:
    """Wait for a subscription's pump thread to finish (if given), then run queued callbacks."""
    if sub is not None and sub.pump is not None:
        sub.pump.join(timeout)
    session.dispatcher.drain()


def wait_for(predicate, session, timeout: float = 2.0) -> bool:
    """Drain the dispatcher until predicate() holds."""
    import time

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        session.dispatcher.drain()
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture(name="settle")
def settle_fixture(session):
    return lambda sub=None: settle(session, sub)


@pytest.fixture(name="wait_for")
def wait_for_fixture(session):
    return lambda predicate: wait_for(predicate, session)
