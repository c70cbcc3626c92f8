"""
Interactive command surface.

Each input line is split shell-style and dispatched by its first word.
Usage errors and command failures are logged; they never end the session.
"""

from __future__ import annotations

import logging
import shlex
import sys
from typing import Callable, Optional, TextIO

from mqtt_console.core.sinks import CONSOLE, SinkId
from mqtt_console.errors import MqttConsoleError
from mqtt_console.session import Session

logger = logging.getLogger(__name__)

HELP = """\
connect [host] [port] [user] [password]   set broker parameters (defaults if omitted)
subscribe <topic>                         start a subscription in its own buffer
publish <topic> <payload...>              publish a message
stop <topic>                              stop subscriptions to a topic
disconnect                                stop everything and clear buffers
console                                   open the console buffer
list                                      show active subscriptions
show <topic|console>                      print a buffer and follow it
hide <topic|console>                      stop following a buffer
close <topic|console>                     close a buffer (stops its subscriptions)
help                                      this text
quit                                      leave
"""


class UsageError(MqttConsoleError):
    """Raised for malformed shell commands."""


def sink_for(name: str) -> SinkId:
    return CONSOLE if name == "console" else SinkId.topic(name)


class CommandShell:
    def __init__(self, session: Session, *, out: Optional[TextIO] = None, on_quit: Optional[Callable[[], None]] = None) -> None:
        self.session = session
        self._out = out or sys.stdout
        self._on_quit = on_quit
        self._handlers: dict[str, Callable[[list[str]], None]] = {
            "connect": self._connect,
            "subscribe": self._subscribe,
            "publish": self._publish,
            "stop": self._stop,
            "disconnect": lambda a: self._no_args("disconnect", a, self.session.disconnect),
            "console": lambda a: self._no_args("console", a, self.session.open_console),
            "list": self._list,
            "show": self._show,
            "hide": self._hide,
            "close": self._close,
            "help": lambda a: self._write(HELP.rstrip("\n")),
            "quit": self._quit,
            "exit": self._quit,
        }

    def execute(self, line: str) -> None:
        """Run one command line. Blank lines are ignored."""
        try:
            words = shlex.split(line)
        except ValueError as exc:
            logger.error("Cannot parse %r: %s", line, exc)
            return
        if not words:
            return
        name, args = words[0].lower(), words[1:]
        handler = self._handlers.get(name)
        if handler is None:
            logger.error("Unknown command: %s (try 'help')", name)
            return
        try:
            handler(args)
        except MqttConsoleError as exc:
            logger.error("%s", exc)

    def _write(self, text: str) -> None:
        self._out.write(text + "\n")
        self._out.flush()

    @staticmethod
    def _no_args(name: str, args: list[str], fn: Callable[[], object]) -> None:
        if args:
            raise UsageError(f"Usage: {name}")
        fn()

    @staticmethod
    def _one_arg(name: str, args: list[str]) -> str:
        if len(args) != 1:
            raise UsageError(f"Usage: {name} <topic>")
        return args[0]

    def _connect(self, args: list[str]) -> None:
        if len(args) > 4:
            raise UsageError("Usage: connect [host] [port] [user] [password]")
        self.session.connect(*args)

    def _subscribe(self, args: list[str]) -> None:
        self.session.subscribe(self._one_arg("subscribe", args))

    def _publish(self, args: list[str]) -> None:
        if len(args) < 2:
            raise UsageError("Usage: publish <topic> <payload>")
        # remaining words form the payload
        self.session.publish(args[0], " ".join(args[1:]))

    def _stop(self, args: list[str]) -> None:
        self.session.unsubscribe(self._one_arg("stop", args))

    def _list(self, args: list[str]) -> None:
        subs = self.session.manager.active()
        if not subs:
            self._write("no active subscriptions")
            return
        params = self.session.connection.params
        for sub in subs:
            self._write(f"{sub.id}\t{sub.topic}\t{sub.state.value}\t{params.describe()}")

    def _show(self, args: list[str]) -> None:
        name = self._one_arg("show", args)
        sink_id = sink_for(name)
        if sink_id == CONSOLE:
            self.session.open_console()
            return
        surface = self.session.sinks.get(sink_id)
        if surface is None:
            raise UsageError(f"No buffer for {name}")
        surface.open_window()

    def _hide(self, args: list[str]) -> None:
        surface = self.session.sinks.get(sink_for(self._one_arg("hide", args)))
        if surface is not None:
            surface.hide_window()

    def _close(self, args: list[str]) -> None:
        name = self._one_arg("close", args)
        if not self.session.close_sink(sink_for(name)):
            raise UsageError(f"No buffer for {name}")

    def _quit(self, args: list[str]) -> None:
        if self._on_quit is not None:
            self._on_quit()
