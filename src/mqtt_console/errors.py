"""
Error types for mqtt-console.

Synchronous failures (bad arguments, spawn failure) are raised to the caller.
Asynchronous ones (a subscription process dying later) only surface as status
lines in the sinks and as log records.
"""

from __future__ import annotations


class MqttConsoleError(Exception):
    """Base class for mqtt-console errors."""


class SpawnError(MqttConsoleError):
    """Raised when an external client process cannot be started."""

    def __init__(self, argv: list[str], reason: str) -> None:
        self.argv = list(argv)
        self.reason = reason
        binary = argv[0] if argv else "<empty argv>"
        super().__init__(f"failed to start {binary}: {reason}")


class TopicError(MqttConsoleError, ValueError):
    """Raised when a topic or topic filter is malformed."""


class TopicRequiredError(TopicError):
    """Raised when a topic is empty or missing."""


class ConnectionParamsError(MqttConsoleError, ValueError):
    """Raised when connect() receives unusable parameters."""


class StaleSinkError(MqttConsoleError):
    """Raised when appending to a surface that was closed externally."""


class ProcessExitNonZero(MqttConsoleError):
    """
    A subscription process ended on its own with a non-zero code.

    Informational only: rendered into a status line, never raised into callers.
    """

    def __init__(self, topic: str, code: int) -> None:
        self.topic = topic
        self.code = code
        super().__init__(f"subscription to {topic} exited with code {code}")
