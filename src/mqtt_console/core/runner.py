"""
External process runner.

start() spawns a client process and returns a ManagedProcess whose stdout is
exposed as a lazy iterator of complete lines. Output is read by whoever
iterates lines(); this module never touches sinks or shared state.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from mqtt_console.errors import SpawnError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExitStatus:
    code: Optional[int]
    stopped: bool = False  # True when stop() was requested before natural exit

    def describe(self) -> str:
        if self.stopped:
            return "stopped"
        return f"code {self.code}"


class ManagedProcess:
    """One spawned external client. Owned by exactly one subscription or publish."""

    def __init__(self, popen: subprocess.Popen, argv: Sequence[str], *, stop_grace_s: float = 2.0) -> None:
        self._popen = popen
        self.argv = list(argv)
        self._stop_grace_s = stop_grace_s
        self._lock = threading.Lock()
        self._stop_requested = False
        self._status: Optional[ExitStatus] = None
        self._kill_timer: Optional[threading.Timer] = None

    @property
    def handle(self) -> int:
        return self._popen.pid

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def lines(self) -> Iterator[str]:
        """
        Yield stdout one line at a time, newline stripped.
        A trailing unterminated line is yielded once the process closes stdout.
        """
        stream = self._popen.stdout
        if stream is None:
            return
        try:
            for raw in stream:
                yield raw.rstrip("\r\n")
        except ValueError:
            # stdout closed underneath us during stop()
            return
        finally:
            stream.close()

    def wait(self) -> ExitStatus:
        code = self._popen.wait()
        with self._lock:
            if self._kill_timer is not None:
                self._kill_timer.cancel()
            if self._status is None:
                self._status = ExitStatus(code=code, stopped=self._stop_requested)
            return self._status

    def poll(self) -> Optional[int]:
        return self._popen.poll()

    def stop(self) -> None:
        """Request termination. No-op if already stopped or exited."""
        with self._lock:
            if self._stop_requested or self._status is not None:
                return
            if self._popen.poll() is not None:
                return
            self._stop_requested = True
            try:
                self._popen.terminate()
            except ProcessLookupError:
                return
            if self._stop_grace_s > 0:
                self._kill_timer = threading.Timer(self._stop_grace_s, self._kill_if_running)
                self._kill_timer.daemon = True
                self._kill_timer.start()
        logger.debug("Stop requested pid=%s", self.handle)

    def _kill_if_running(self) -> None:
        if self._popen.poll() is None:
            logger.warning("pid=%s ignored SIGTERM; killing", self.handle)
            try:
                self._popen.kill()
            except ProcessLookupError:
                pass


class ProcessRunner:
    def __init__(self, *, stop_grace_s: float = 2.0) -> None:
        self.stop_grace_s = stop_grace_s

    def start(self, argv: Sequence[str], *, capture_output: bool = True) -> ManagedProcess:
        """
        Spawn argv. Raises SpawnError if the binary is missing or not executable.
        With capture_output=False stdout is discarded and lines() yields nothing.
        """
        if not argv:
            raise SpawnError([], "empty command")
        try:
            popen = subprocess.Popen(
                list(argv),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE if capture_output else subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as exc:
            raise SpawnError(list(argv), "executable not found") from exc
        except PermissionError as exc:
            raise SpawnError(list(argv), "permission denied") from exc
        except OSError as exc:
            raise SpawnError(list(argv), str(exc)) from exc

        logger.debug("Spawned pid=%s: %s", popen.pid, argv[0])
        self._watch_stderr(popen, argv[0])
        return ManagedProcess(popen, argv, stop_grace_s=self.stop_grace_s)

    @staticmethod
    def _watch_stderr(popen: subprocess.Popen, name: str) -> None:
        stream = popen.stderr
        if stream is None:
            return

        def _pump() -> None:
            try:
                for raw in stream:
                    line = raw.rstrip("\r\n")
                    if line:
                        logger.warning("%s[%s]: %s", name, popen.pid, line)
            except ValueError:
                pass
            finally:
                stream.close()

        threading.Thread(target=_pump, daemon=True, name=f"stderr-{popen.pid}").start()
