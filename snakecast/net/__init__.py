from .protocol import (
    SERVICE_NAME,
    SERVICE_TYPE,
    Connected,
    Connecting,
    ConnectionState,
    DiscoveredEndpoint,
    Direction,
    Disconnected,
    Error,
)

__all__ = [
    "SERVICE_NAME",
    "SERVICE_TYPE",
    "Connected",
    "Connecting",
    "ConnectionState",
    "DiscoveredEndpoint",
    "Direction",
    "Disconnected",
    "Error",
]
