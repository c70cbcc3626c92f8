"""
mqtt-console entrypoint.

CLI:
  mqtt-console shell [--host H] [--port P] [--user U] [--password PW] [--no-console]
  mqtt-console --version
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
import sys
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, TextIO

from mqtt_console.config import ClientConfig, ConfigError, load_config, package_version
from mqtt_console.core.log_config import configure_logging

if TYPE_CHECKING:
    from mqtt_console.session import Session

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    shutdown: threading.Event
    session: Optional["Session"] = None


def _install_signal_handlers(rt: Runtime) -> None:
    def _handler(signum: int, frame) -> None:  # frame is unused, keep signature
        logger.info("Received signal %s; requesting shutdown", signum)
        rt.shutdown.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def _apply_overrides(cfg: ClientConfig, args: argparse.Namespace) -> ClientConfig:
    changes: dict[str, object] = {}
    if args.host:
        changes["default_host"] = args.host
    if args.port is not None:
        if not (1 <= args.port <= 65535):
            raise ConfigError(f"--port out of range: {args.port}")
        changes["default_port"] = args.port
    if args.user:
        changes["default_user"] = args.user
    if args.password:
        changes["default_pass"] = args.password
    if args.no_console:
        changes["use_console"] = False
    return dataclasses.replace(cfg, **changes) if changes else cfg


def _read_stdin(rt: Runtime, shell, dispatcher, stream: TextIO) -> None:
    # stdin reader thread: hand each line to the control thread
    for line in stream:
        if rt.shutdown.is_set():
            return
        dispatcher.post(shell.execute, line)
    logger.debug("stdin closed")
    dispatcher.post(rt.shutdown.set)


def run_shell(cfg: ClientConfig, *, stdin: Optional[TextIO] = None, out: Optional[TextIO] = None) -> int:
    """
    Interactive mode: read commands from stdin, run the dispatcher on this
    thread until quit/EOF/signal. Returns process exit code.
    """
    from mqtt_console.session import Session
    from mqtt_console.shell import CommandShell

    rt = Runtime(shutdown=threading.Event())
    if threading.current_thread() is threading.main_thread():
        _install_signal_handlers(rt)

    session = Session(cfg, out=out)
    rt.session = session
    shell = CommandShell(session, out=out, on_quit=rt.shutdown.set)

    logger.info("mqtt-console %s (default broker %s:%s)", cfg.version, cfg.default_host, cfg.default_port)

    reader = threading.Thread(
        target=_read_stdin,
        args=(rt, shell, session.dispatcher, stdin or sys.stdin),
        daemon=True,
        name="stdin-reader",
    )
    reader.start()

    try:
        session.dispatcher.run_until(rt.shutdown)
    finally:
        _shutdown(rt)
    return 0


def _shutdown(rt: Runtime) -> None:
    logger.info("Shutting down...")
    if rt.session is not None:
        try:
            rt.session.shutdown()
        except Exception:
            logger.exception("Error stopping subscriptions")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mqtt-console")
    p.add_argument("--version", action="version", version=package_version())
    p.add_argument("--log-level", metavar="LEVEL", help="DEBUG, INFO, WARNING, ... (default: env or INFO)")

    sub = p.add_subparsers(dest="cmd", required=True)

    shell_parser = sub.add_parser("shell", help="Run the interactive client")
    shell_parser.add_argument("--host", help="Default broker host")
    shell_parser.add_argument("--port", type=int, help="Default broker port")
    shell_parser.add_argument("--user", help="Default username")
    shell_parser.add_argument("--password", help="Default password")
    shell_parser.add_argument(
        "--no-console",
        action="store_true",
        help="Do not copy messages into the aggregated console buffer",
    )

    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.cmd == "shell":
        try:
            cfg = _apply_overrides(load_config(), args)
        except ConfigError as exc:
            logger.error("Configuration error: %s", exc)
            raise SystemExit(2)
        raise SystemExit(run_shell(cfg))

    raise SystemExit(2)


if __name__ == "__main__":
    main()
