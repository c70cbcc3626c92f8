"""
argv construction for the Mosquitto command-line clients.

Flag order is fixed: binary, -h host, -p port, [-u user], [-P pass],
pass-through client options, then role arguments (-t topic [-m payload]).
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional, Sequence

from mqtt_console.config import DEFAULT_PUB_BIN, DEFAULT_SUB_BIN
from mqtt_console.core.connection import ConnectionParams


class Role(str, Enum):
    SUBSCRIBE = "subscribe"
    PUBLISH = "publish"


DEFAULT_BINARIES: Mapping[Role, str] = {
    Role.SUBSCRIBE: DEFAULT_SUB_BIN,
    Role.PUBLISH: DEFAULT_PUB_BIN,
}


def build_command(
    role: Role,
    connection: ConnectionParams,
    args: Sequence[str],
    client_opts: Sequence[str] = (),
    binaries: Optional[Mapping[Role, str]] = None,
) -> list[str]:
    binary = (binaries or DEFAULT_BINARIES)[role]
    cmd = [binary, "-h", connection.host, "-p", str(connection.port)]
    if connection.user:
        cmd += ["-u", connection.user]
    if connection.password:
        cmd += ["-P", connection.password]
    cmd.extend(client_opts)
    cmd.extend(args)
    return cmd


def subscribe_args(topic: str) -> list[str]:
    return ["-t", topic]


def publish_args(topic: str, payload: str) -> list[str]:
    return ["-t", topic, "-m", payload]
