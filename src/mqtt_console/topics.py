"""
MQTT topic checks for mqtt-console.

Topic names are validated before any external process is spawned, so a bad
topic never costs a mosquitto_sub/pub launch.
Subscribe: topic filters, `+` and `#` allowed as whole levels, `#` last.
Publish: plain topic names, no wildcards.
"""

from __future__ import annotations

from typing import Optional

from mqtt_console.errors import TopicError, TopicRequiredError

_WILDCARDS = ("+", "#")


def require_topic(topic: Optional[str], *, command: str = "subscribe") -> str:
    if topic is None or not isinstance(topic, str) or topic == "":
        raise TopicRequiredError(f"Topic required for {command}")
    if "\x00" in topic:
        raise TopicError(f"topic '{topic!r}' contains a NUL character")
    return topic


def validate_filter(topic: Optional[str]) -> str:
    topic = require_topic(topic, command="subscribe")
    levels = topic.split("/")
    for i, level in enumerate(levels):
        if level == "#":
            if i != len(levels) - 1:
                raise TopicError(f"topic filter '{topic}' is invalid; '#' must be the last level")
            continue
        if level == "+":
            continue
        if any(w in level for w in _WILDCARDS):
            raise TopicError(
                f"topic filter '{topic}' is invalid; wildcards must occupy a whole level"
            )
    return topic


def validate_publish_topic(topic: Optional[str]) -> str:
    topic = require_topic(topic, command="publish")
    if any(w in topic for w in _WILDCARDS):
        raise TopicError(f"cannot publish to '{topic}'; wildcards are not allowed")
    return topic


def console_line(topic: Optional[str], line: str) -> str:
    """Prefix a line with its topic for the aggregated console."""
    if not topic:
        return line
    return f"[{topic}] {line}"
