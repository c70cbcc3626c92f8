"""
Apply log level from the command line or env.

Single log level for all loggers. An explicit --log-level wins over
MQTT_CONSOLE_LOG_LEVEL, which wins over INFO.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _parse_level(raw: str) -> int:
    if not raw or not str(raw).strip():
        return logging.INFO
    raw = str(raw).strip().upper()
    if raw.isdigit():
        return int(raw)
    return int(getattr(logging, raw, logging.INFO))


def level_from_arg_or_env(arg: Optional[str]) -> int:
    """
    Resolve log level: arg if given, else MQTT_CONSOLE_LOG_LEVEL env, else INFO.
    """
    if arg:
        return _parse_level(arg)
    raw = os.environ.get("MQTT_CONSOLE_LOG_LEVEL", "").strip()
    return _parse_level(raw) if raw else logging.INFO


def configure_logging(arg: Optional[str] = None) -> int:
    """Install the root handler once and apply the resolved level. Returns the level."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    level = level_from_arg_or_env(arg)
    logging.getLogger().setLevel(level)
    return level
