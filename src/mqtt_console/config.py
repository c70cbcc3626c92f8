"""
mqtt-console configuration.

Single source for runtime configuration. Values come from environment variables,
optionally loaded from standard env files. Every value has a default, so an
empty environment yields a client pointed at a local broker.

Priority (lowest -> highest):
1) /etc/mqtt-console/.env (system install)
2) ~/.config/mqtt-console/.env (user install)
3) ./.env (project override)
4) process environment variables (always win)
"""

from __future__ import annotations

import os
import shlex
import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 1883
DEFAULT_SUB_BIN = "mosquitto_sub"
DEFAULT_PUB_BIN = "mosquitto_pub"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


def package_version() -> str:
    try:
        return _pkg_version("mqtt-console")
    except PackageNotFoundError:
        return "0.0.0+dev"


def _env_paths() -> Iterable[Path]:
    # 1) system install
    yield Path("/etc/mqtt-console/.env")

    # 2) user config dir
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", str(Path.home())))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    yield base / "mqtt-console" / ".env"

    # 3) project override
    yield Path(".env")


def _optional_env(key: str) -> Optional[str]:
    v = os.getenv(key)
    if v is None or v == "":
        return None
    return v


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid integer for {key}: {raw!r}") from exc


def _parse_float(key: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid number for {key}: {raw!r}") from exc


def _parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {key}: {raw!r}")


def _parse_opts(key: str, raw: str) -> tuple[str, ...]:
    try:
        return tuple(shlex.split(raw))
    except ValueError as exc:
        raise ConfigError(f"Invalid option string for {key}: {exc}") from exc


@dataclass(frozen=True, slots=True)
class ClientConfig:
    default_host: str = DEFAULT_HOST
    default_port: int = DEFAULT_PORT
    default_user: Optional[str] = None
    default_pass: Optional[str] = None
    client_opts: tuple[str, ...] = ()  # passed verbatim to mosquitto_sub/pub, e.g. ("--insecure",)
    use_console: bool = True
    sub_binary: str = DEFAULT_SUB_BIN
    pub_binary: str = DEFAULT_PUB_BIN
    stop_grace_s: float = 2.0  # SIGTERM -> SIGKILL escalation delay
    version: str = "0.0.0+dev"


def load_config(*, dotenv_enabled: bool = True) -> ClientConfig:
    """
    Load config by reading env files and then validating environment variables.

    Returns an immutable ClientConfig. Raises ConfigError on failure.
    """
    if dotenv_enabled:
        for p in _env_paths():
            if p.is_file():
                # do not override existing env vars; later files can fill missing
                load_dotenv(p, override=False)

    port = _parse_int("MQTT_PORT", os.getenv("MQTT_PORT", str(DEFAULT_PORT)))
    if not (1 <= port <= 65535):
        raise ConfigError(f"MQTT_PORT out of range: {port}")

    grace = _parse_float("MQTT_STOP_GRACE_S", os.getenv("MQTT_STOP_GRACE_S", "2.0"))
    if grace < 0:
        raise ConfigError("MQTT_STOP_GRACE_S must be >= 0")

    return ClientConfig(
        default_host=_optional_env("MQTT_HOST") or DEFAULT_HOST,
        default_port=port,
        default_user=_optional_env("MQTT_USER"),
        default_pass=_optional_env("MQTT_PASSWORD"),
        client_opts=_parse_opts("MQTT_CLIENT_OPTS", os.getenv("MQTT_CLIENT_OPTS", "")),
        use_console=_parse_bool("MQTT_USE_CONSOLE", os.getenv("MQTT_USE_CONSOLE", "true")),
        sub_binary=_optional_env("MQTT_SUB_BIN") or DEFAULT_SUB_BIN,
        pub_binary=_optional_env("MQTT_PUB_BIN") or DEFAULT_PUB_BIN,
        stop_grace_s=grace,
        version=package_version(),
    )
