"""
Subscription manager — one mosquitto_sub process per subscription.

Lifecycle per subscription: STARTING -> RUNNING -> STOPPING -> STOPPED.
A pump thread per subscription reads process output and posts it to the
Dispatcher; every sink append and handle-map mutation runs on the control
thread, so lines from one subscription reach the sinks in the order the
process wrote them, and nothing is delivered once stop() has run.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from mqtt_console.config import ClientConfig
from mqtt_console.core.command import Role, build_command, publish_args, subscribe_args
from mqtt_console.core.connection import ConnectionState
from mqtt_console.core.dispatch import Dispatcher
from mqtt_console.core.runner import ExitStatus, ManagedProcess, ProcessRunner
from mqtt_console.core.sinks import CONSOLE, SinkId, SinkRegistry
from mqtt_console.errors import ProcessExitNonZero, SpawnError
from mqtt_console.topics import console_line, validate_filter, validate_publish_topic

logger = logging.getLogger(__name__)


class SubscriptionState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class Subscription:
    topic: str
    sink: SinkId
    id: Optional[int] = None  # pid of the mosquitto_sub process once running
    process: Optional[ManagedProcess] = field(default=None, repr=False)
    state: SubscriptionState = SubscriptionState.STARTING
    pump: Optional[threading.Thread] = field(default=None, repr=False)
    unwatch: Optional[Callable[[], None]] = field(default=None, repr=False)


def ended_line(topic: str, status: ExitStatus) -> str:
    return f"[mqtt-console] Subscription to {topic} ended ({status.describe()})"


class SubscriptionManager:
    """
    Owns the handle map (pid -> Subscription). Must be driven from the
    Dispatcher's control thread.
    """

    def __init__(
        self,
        cfg: ClientConfig,
        connection: ConnectionState,
        sinks: SinkRegistry,
        dispatcher: Dispatcher,
        runner: Optional[ProcessRunner] = None,
    ) -> None:
        self._cfg = cfg
        self._connection = connection
        self._sinks = sinks
        self._dispatcher = dispatcher
        self._runner = runner or ProcessRunner(stop_grace_s=cfg.stop_grace_s)
        self._binaries = {Role.SUBSCRIBE: cfg.sub_binary, Role.PUBLISH: cfg.pub_binary}
        self._subs: dict[int, Subscription] = {}

    @property
    def handle_map(self) -> Mapping[int, Subscription]:
        return MappingProxyType(self._subs)

    def active(self) -> list[Subscription]:
        return list(self._subs.values())

    def _command(self, role: Role, args: list[str]) -> list[str]:
        return build_command(
            role,
            self._connection.params,
            args,
            self._cfg.client_opts,
            self._binaries,
        )

    def subscribe(self, topic: str) -> Subscription:
        """
        Start a new subscription. Every call spawns an independent process,
        even when the topic is already subscribed.
        Raises TopicError/TopicRequiredError before spawning, SpawnError if the spawn fails.
        """
        topic = validate_filter(topic)
        sink = SinkId.topic(topic)
        sub = Subscription(topic=topic, sink=sink)

        argv = self._command(Role.SUBSCRIBE, subscribe_args(topic))
        try:
            process = self._runner.start(argv)
        except SpawnError as exc:
            sub.state = SubscriptionState.STOPPED
            logger.error("Failed to start %s for %s: %s", argv[0], topic, exc.reason)
            raise

        sub.id = process.handle
        sub.process = process
        sub.state = SubscriptionState.RUNNING
        self._subs[sub.id] = sub
        # surface only once the process exists, so a failed spawn leaves nothing behind
        self._sinks.get_or_create(sink)
        sub.unwatch = self._sinks.on_closed(sink, partial(self._on_sink_closed, sub.id, process))

        sub.pump = threading.Thread(
            target=self._pump,
            args=(sub.id, process),
            daemon=True,
            name=f"mqtt-sub-{sub.id}",
        )
        sub.pump.start()
        logger.info("Subscribed: %s (pid=%s)", topic, sub.id)
        return sub

    def _pump(self, sub_id: int, process: ManagedProcess) -> None:
        # runs on the pump thread: only reads the process and posts
        for line in process.lines():
            self._dispatcher.post(self._deliver, sub_id, process, line)
        status = process.wait()
        self._dispatcher.post(self._on_exit, sub_id, process, status)

    def _lookup(self, sub_id: int, process: ManagedProcess) -> Optional[Subscription]:
        sub = self._subs.get(sub_id)
        # pids can be reused by the OS; match the process object too
        if sub is None or sub.process is not process:
            return None
        return sub

    def _deliver(self, sub_id: int, process: ManagedProcess, line: str) -> None:
        sub = self._lookup(sub_id, process)
        if sub is None or sub.state is not SubscriptionState.RUNNING:
            return
        self._sinks.append(sub.sink, line)
        self._sinks.append(CONSOLE, console_line(sub.topic, line))

    def _on_exit(self, sub_id: int, process: ManagedProcess, status: ExitStatus) -> None:
        sub = self._lookup(sub_id, process)
        if sub is None:
            logger.debug("pid=%s exited after stop (%s)", sub_id, status.describe())
            return

        msg = ended_line(sub.topic, status)
        self._sinks.append(sub.sink, msg)
        self._sinks.append(CONSOLE, console_line(sub.topic, msg))
        if status.code:
            logger.warning("%s", ProcessExitNonZero(sub.topic, status.code))
        else:
            logger.info("Subscription to %s ended (%s)", sub.topic, status.describe())

        self._unwatch(sub)
        sub.state = SubscriptionState.STOPPED
        del self._subs[sub_id]

    def _on_sink_closed(self, sub_id: int, process: ManagedProcess) -> None:
        sub = self._lookup(sub_id, process)
        if sub is None:
            return
        logger.info("Surface for %s closed; stopping pid=%s", sub.topic, sub_id)
        self.stop(sub_id)

    def stop(self, sub_id: int) -> bool:
        """
        Stop one subscription. Returns False if it is not (or no longer) in the
        handle map; stopping twice is harmless.
        """
        sub = self._subs.pop(sub_id, None)
        if sub is None:
            return False
        sub.state = SubscriptionState.STOPPING
        self._unwatch(sub)
        if sub.process is not None:
            sub.process.stop()
        sub.state = SubscriptionState.STOPPED
        logger.info("Stopped subscription to %s (pid=%s)", sub.topic, sub_id)
        return True

    @staticmethod
    def _unwatch(sub: Subscription) -> None:
        if sub.unwatch is not None:
            sub.unwatch()
            sub.unwatch = None

    def stop_topic(self, topic: str) -> int:
        ids = [sid for sid, sub in self._subs.items() if sub.topic == topic]
        return sum(1 for sid in ids if self.stop(sid))

    def stop_all(self) -> int:
        return sum(1 for sid in list(self._subs) if self.stop(sid))

    def publish(self, topic: str, payload: str) -> int:
        """
        Fire-and-forget publish. Returns the pid of the mosquitto_pub process.
        Nothing is recorded in the handle map; a failing exit is only logged.
        """
        topic = validate_publish_topic(topic)
        argv = self._command(Role.PUBLISH, publish_args(topic, payload))
        try:
            process = self._runner.start(argv, capture_output=False)
        except SpawnError as exc:
            logger.error("Failed to publish to %s: %s", topic, exc.reason)
            raise

        threading.Thread(
            target=self._reap_publish,
            args=(topic, process),
            daemon=True,
            name=f"mqtt-pub-{process.handle}",
        ).start()
        return process.handle

    @staticmethod
    def _reap_publish(topic: str, process: ManagedProcess) -> None:
        status = process.wait()
        if status.code:
            logger.warning("Publish to %s failed (%s)", topic, status.describe())
        else:
            logger.debug("Publish to %s completed", topic)
