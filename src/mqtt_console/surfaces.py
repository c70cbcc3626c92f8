"""
Display surfaces: named, append-only text buffers with an optional window.

A surface whose window is open echoes appended lines to the output stream.
close() models the user wiping the surface: it becomes invalid and its close
callbacks fire once. Surfaces are touched only from the control thread.
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, Optional, TextIO

from mqtt_console.errors import StaleSinkError

logger = logging.getLogger(__name__)


def _noop() -> None:
    pass


class TextSurface:
    def __init__(self, name: str, *, header: Optional[str] = None, out: Optional[TextIO] = None) -> None:
        self.name = name
        self._lines: list[str] = [header] if header is not None else []
        self._valid = True
        self._window_open = False
        self._close_callbacks: list[Callable[[], None]] = []
        self._out = out

    def __repr__(self) -> str:
        state = "valid" if self._valid else "closed"
        return f"<TextSurface {self.name!r} {state} lines={len(self._lines)}>"

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def window_open(self) -> bool:
        return self._window_open

    def is_valid(self) -> bool:
        return self._valid

    def append_lines(self, lines: list[str]) -> None:
        if not self._valid:
            raise StaleSinkError(f"surface {self.name!r} was closed")
        self._lines.extend(lines)
        if self._window_open:
            self._echo(lines)

    def set_lines(self, lines: list[str]) -> None:
        if not self._valid:
            raise StaleSinkError(f"surface {self.name!r} was closed")
        self._lines = list(lines)

    def open_window(self) -> None:
        """Show the surface: print its backlog, then echo new lines."""
        if not self._valid or self._window_open:
            return
        self._window_open = True
        self._echo(self._lines)

    def hide_window(self) -> None:
        self._window_open = False

    def on_close(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register callback for close(). Returns a function that unregisters it."""
        if not self._valid:
            callback()
            return _noop
        self._close_callbacks.append(callback)

        def remove() -> None:
            if callback in self._close_callbacks:
                self._close_callbacks.remove(callback)

        return remove

    @property
    def close_callback_count(self) -> int:
        return len(self._close_callbacks)

    def close(self) -> None:
        if not self._valid:
            return
        self._valid = False
        self._window_open = False
        callbacks, self._close_callbacks = self._close_callbacks, []
        for cb in callbacks:
            try:
                cb()
            except Exception:
                logger.exception("Close callback failed for surface %s", self.name)

    def _echo(self, lines: list[str]) -> None:
        out = self._out or sys.stdout
        for line in lines:
            out.write(f"{self.name} | {line}\n")
        out.flush()


class SurfaceProvider:
    """Creates surfaces bound to one output stream (stdout unless given)."""

    def __init__(self, out: Optional[TextIO] = None, *, open_windows: bool = True) -> None:
        self._out = out
        self._open_windows = open_windows

    def create(self, name: str, *, header: Optional[str] = None) -> TextSurface:
        surface = TextSurface(name, header=header, out=self._out)
        if self._open_windows:
            surface.open_window()
        return surface
