from __future__ import annotations

from typing import Optional

# Transport error codes carried by RegistrationError
ERROR_INTERNAL = 0
ERROR_NAME_CONFLICT = 1
ERROR_TRANSPORT_UNAVAILABLE = 2
ERROR_CANCELLED = 3


class SnakeCastError(Exception):
    pass


class DiscoveryError(SnakeCastError):
    """The discovery transport could not start a scan or advertisement."""


class RegistrationError(DiscoveryError):
    def __init__(self, message: str, code: int = ERROR_INTERNAL) -> None:
        super().__init__(f"{message} (error code {code})")
        self.code = code


class ResolutionFailure(DiscoveryError):
    # Built for logging only; the browser never propagates these.
    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"could not resolve {name}: {reason}")
        self.name = name


class ConnectError(SnakeCastError):
    def __init__(self, host: str, port: int, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Connection failed to {host}:{port}{detail}")
        self.host = host
        self.port = port


class SendError(SnakeCastError):
    def __init__(self, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Send failed{detail}")
