"""
Sink registry — logical sink ids mapped to display surfaces.

Topic sinks are keyed by topic name; the console sink is a singleton that
aggregates every topic. Surfaces are created lazily and recreated
transparently after an external close.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from mqtt_console.errors import StaleSinkError
from mqtt_console.surfaces import SurfaceProvider, TextSurface

logger = logging.getLogger(__name__)

CONSOLE_HEADER = "-- MQTT console --"
CONSOLE_CLEARED = "-- MQTT console cleared --"
TOPIC_CLEARED = "-- MQTT buffer cleared --"


@dataclass(frozen=True, slots=True)
class SinkId:
    kind: str  # "topic" or "console"
    name: str

    @classmethod
    def topic(cls, name: str) -> "SinkId":
        return cls("topic", name)

    @property
    def is_console(self) -> bool:
        return self.kind == "console"

    def __str__(self) -> str:
        return self.name


CONSOLE = SinkId("console", "console")


def _header(sink_id: SinkId) -> str:
    if sink_id.is_console:
        return CONSOLE_HEADER
    return f"-- MQTT subscription: {sink_id.name} --"


class SinkRegistry:
    def __init__(self, provider: SurfaceProvider, *, use_console: bool = True) -> None:
        self._provider = provider
        self.use_console = use_console
        self._surfaces: dict[SinkId, TextSurface] = {}

    def get_or_create(self, sink_id: SinkId) -> TextSurface:
        """Idempotent while the existing surface is valid."""
        surface = self._surfaces.get(sink_id)
        if surface is not None and surface.is_valid():
            return surface
        if surface is not None:
            logger.debug("Surface for %s was closed; recreating", sink_id)
        surface = self._provider.create(sink_id.name, header=_header(sink_id))
        self._surfaces[sink_id] = surface
        return surface

    def get(self, sink_id: SinkId) -> Optional[TextSurface]:
        surface = self._surfaces.get(sink_id)
        if surface is not None and surface.is_valid():
            return surface
        return None

    def is_live(self, sink_id: SinkId) -> bool:
        return self.get(sink_id) is not None

    def append(self, sink_id: SinkId, line: str, *, eager: bool = True) -> bool:
        """
        Append one line. Returns False when the append was skipped.

        Console appends are skipped when console routing is off. Non-eager
        appends are skipped when the sink has no live surface.
        """
        if sink_id.is_console and not self.use_console:
            return False
        if not eager and not self.is_live(sink_id):
            return False
        surface = self._surfaces.get(sink_id)
        if surface is None:
            surface = self.get_or_create(sink_id)
        try:
            surface.append_lines([line])
        except StaleSinkError:
            logger.debug("Surface for %s was closed; recreating", sink_id)
            self.get_or_create(sink_id).append_lines([line])
        return True

    def clear(self, sink_id: SinkId, banner: Optional[str] = None) -> None:
        surface = self.get(sink_id)
        if surface is None:
            return
        if banner is None:
            banner = CONSOLE_CLEARED if sink_id.is_console else TOPIC_CLEARED
        surface.set_lines([banner])

    def clear_all(self) -> None:
        for sink_id in list(self._surfaces):
            self.clear(sink_id)

    def on_closed(self, sink_id: SinkId, callback: Callable[[], None]) -> Callable[[], None]:
        """
        callback fires at most once, when the current surface for sink_id is closed.
        Returns a function that unregisters it.
        """
        return self.get_or_create(sink_id).on_close(callback)

    def close(self, sink_id: SinkId) -> bool:
        """Close the surface as if the user wiped it. Returns False if it was not live."""
        surface = self.get(sink_id)
        if surface is None:
            return False
        surface.close()
        return True

    def lines(self, sink_id: SinkId) -> list[str]:
        surface = self.get(sink_id)
        return surface.lines if surface is not None else []

    def sink_ids(self) -> list[SinkId]:
        return [sid for sid, s in self._surfaces.items() if s.is_valid()]
