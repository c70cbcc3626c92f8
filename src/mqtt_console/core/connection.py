"""
Broker connection parameters.

The external clients open their own connections; "connecting" here only
records which broker the next mosquitto_sub/pub invocation should target.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from mqtt_console.config import ClientConfig
from mqtt_console.errors import ConnectionParamsError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConnectionParams:
    host: str
    port: int
    user: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def defaults(cls, cfg: ClientConfig) -> "ConnectionParams":
        return cls(
            host=cfg.default_host,
            port=cfg.default_port,
            user=cfg.default_user,
            password=cfg.default_pass,
        )

    def describe(self) -> str:
        return f"{self.host}:{self.port}"


def _parse_port(raw: Union[int, str]) -> int:
    try:
        port = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConnectionParamsError(f"invalid port: {raw!r}") from exc
    if not (1 <= port <= 65535):
        raise ConnectionParamsError(f"port out of range: {port}")
    return port


def _blank(value: Optional[Union[int, str]]) -> bool:
    return value is None or value == ""


class ConnectionState:
    """
    Current broker parameters. Always fully resolved; replaced wholesale on
    connect() and restored to the configured defaults on reset().
    """

    def __init__(self, cfg: ClientConfig) -> None:
        self._defaults = ConnectionParams.defaults(cfg)
        self._params = self._defaults
        self._connected = False

    @property
    def params(self) -> ConnectionParams:
        return self._params

    @property
    def defaults(self) -> ConnectionParams:
        return self._defaults

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(
        self,
        host: Optional[str] = None,
        port: Optional[Union[int, str]] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> ConnectionParams:
        """Omitted or empty arguments fall back to the configured defaults."""
        d = self._defaults
        params = ConnectionParams(
            host=d.host if _blank(host) else str(host),
            port=d.port if _blank(port) else _parse_port(port),
            user=d.user if _blank(user) else user,
            password=d.password if _blank(password) else password,
        )
        self._params = params
        self._connected = True
        return params

    def ensure(self) -> ConnectionParams:
        if not self._connected:
            logger.debug("No connect() yet; using defaults %s", self._defaults.describe())
            return self.connect()
        return self._params

    def reset(self) -> None:
        self._params = self._defaults
        self._connected = False
