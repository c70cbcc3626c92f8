"""
Session — the single owned context behind the user-facing commands.

Holds the connection parameters, sink registry, dispatcher and subscription
manager, and implements connect / subscribe / publish / disconnect / console.
All methods run on the control thread.
"""

from __future__ import annotations

import logging
from typing import Optional, TextIO, Union

from mqtt_console.config import ClientConfig
from mqtt_console.core.connection import ConnectionParams, ConnectionState
from mqtt_console.core.dispatch import Dispatcher
from mqtt_console.core.manager import Subscription, SubscriptionManager
from mqtt_console.core.runner import ProcessRunner
from mqtt_console.core.sinks import CONSOLE, SinkId, SinkRegistry
from mqtt_console.surfaces import SurfaceProvider, TextSurface

logger = logging.getLogger(__name__)


class Session:
    def __init__(
        self,
        cfg: ClientConfig,
        *,
        runner: Optional[ProcessRunner] = None,
        provider: Optional[SurfaceProvider] = None,
        dispatcher: Optional[Dispatcher] = None,
        out: Optional[TextIO] = None,
    ) -> None:
        self.cfg = cfg
        self.dispatcher = dispatcher or Dispatcher()
        self.connection = ConnectionState(cfg)
        self.sinks = SinkRegistry(provider or SurfaceProvider(out), use_console=cfg.use_console)
        self.manager = SubscriptionManager(
            cfg,
            self.connection,
            self.sinks,
            self.dispatcher,
            runner=runner,
        )

    def connect(
        self,
        host: Optional[str] = None,
        port: Optional[Union[int, str]] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> ConnectionParams:
        params = self.connection.connect(host, port, user, password)
        logger.info("Connected to %s", params.describe())
        return params

    def _ensure_connected(self) -> None:
        if not self.connection.is_connected:
            self.connect()

    def subscribe(self, topic: str) -> Subscription:
        self._ensure_connected()
        return self.manager.subscribe(topic)

    def publish(self, topic: str, payload: Optional[str] = None) -> int:
        self._ensure_connected()
        pid = self.manager.publish(topic, payload if payload is not None else "")
        logger.info("Published to %s", topic)
        return pid

    def unsubscribe(self, topic: str) -> int:
        n = self.manager.stop_topic(topic)
        if n == 0:
            logger.warning("No active subscription to %s", topic)
        return n

    def disconnect(self) -> int:
        """Stop every subscription, reset the broker parameters, clear all surfaces."""
        n = self.manager.stop_all()
        self.connection.reset()
        self.sinks.clear_all()
        logger.info("Disconnected and stopped all subscriptions (%d)", n)
        return n

    def open_console(self) -> TextSurface:
        surface = self.sinks.get_or_create(CONSOLE)
        surface.open_window()
        return surface

    def close_sink(self, sink_id: SinkId) -> bool:
        """Close a surface as the user would; attached subscriptions stop."""
        return self.sinks.close(sink_id)

    def shutdown(self) -> None:
        n = self.manager.stop_all()
        if n:
            logger.info("Stopped %d subscription(s) on shutdown", n)
