from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

# Wire format
# Controller -> display is a raw TCP byte stream. Each command is exactly one
# byte, the Direction code below. There is no length prefix, framing or ack:
# messages are fixed-size so the stream itself is the message boundary.
# - 0x01 UP, 0x02 DOWN, 0x03 LEFT, 0x04 RIGHT
# - any other byte value is dropped by the receiver
#
# Discovery
# The display advertises SERVICE_NAME under SERVICE_TYPE with the OS-assigned
# port of its listening socket, so a controller has to resolve the service to
# learn where to connect.

SERVICE_TYPE = "_snakecast._tcp."
SERVICE_NAME = "SnakeCast-TV"
SERVICE_DOMAIN = "local."
DEFAULT_PORT = 0  # let the OS pick


def service_type_fqdn() -> str:
    # zeroconf wants the fully qualified form, e.g. "_snakecast._tcp.local."
    return SERVICE_TYPE + SERVICE_DOMAIN


class Direction(Enum):
    UP = 0x01
    DOWN = 0x02
    LEFT = 0x03
    RIGHT = 0x04

    @property
    def code(self) -> int:
        return self.value

    def encode(self) -> bytes:
        return bytes((self.value,))

    def opposite(self) -> "Direction":
        return _OPPOSITES[self]

    def delta(self) -> tuple[int, int]:
        # screen coordinates: y grows downwards
        return _DELTAS[self]

    @classmethod
    def from_code(cls, code: int) -> Optional["Direction"]:
        return _BY_CODE.get(code)


_BY_CODE = {d.value: d for d in Direction}
_OPPOSITES = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}
_DELTAS = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}


def decode(data: bytes) -> list[Direction]:
    """Decode a chunk of the command stream, skipping unknown bytes."""
    out = []
    for b in data:
        d = _BY_CODE.get(b)
        if d is not None:
            out.append(d)
    return out


# Connection states shared by the client and server roles.
# Server: Disconnected means "listening, no peer"; Connected means one peer.

@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass(frozen=True)
class Connecting:
    pass


@dataclass(frozen=True)
class Connected:
    peer_info: str = ""


@dataclass(frozen=True)
class Error:
    message: str


ConnectionState = Union[Disconnected, Connecting, Connected, Error]


@dataclass(frozen=True)
class DiscoveredEndpoint:
    service_name: str
    host: str
    port: int

    @property
    def address(self) -> tuple[str, int]:
        return self.host, self.port
