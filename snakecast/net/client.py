from __future__ import annotations

import logging
import socket
import threading
from typing import Optional

from ..errors import ConnectError, SendError, SnakeCastError
from .net import close_quietly, open_client, send_byte
from .protocol import Connected, Connecting, ConnectionState, Direction, Disconnected, Error
from .streams import StateStream

log = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_MS = 5000


class SocketClient:
    """Controller side of the link: one outbound TCP connection at a time.

    connect() while already connected replaces the previous socket.
    """

    def __init__(self, connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS) -> None:
        self.connect_timeout_ms = connect_timeout_ms
        self.connection_state: StateStream[ConnectionState] = StateStream(Disconnected())
        self.last_error: Optional[SnakeCastError] = None
        self._sock: Optional[socket.socket] = None
        self._lock = threading.Lock()
        self._connect_lock = threading.Lock()
        # bumped by disconnect() so an in-flight connect can tell it was abandoned
        self._generation = 0

    @property
    def state(self) -> ConnectionState:
        return self.connection_state.value

    def connect(self, host: str, port: int, timeout_ms: Optional[int] = None) -> bool:
        timeout = (timeout_ms if timeout_ms is not None else self.connect_timeout_ms) / 1000.0
        with self._connect_lock:
            self.disconnect()
            with self._lock:
                generation = self._generation
            self.connection_state.set(Connecting())
            try:
                sock = open_client(host, port, timeout)
            except OSError as e:
                err = ConnectError(host, port, e)
                log.info("%s", err)
                self._fail(err)
                return False

            with self._lock:
                if generation != self._generation:
                    # disconnect() was called while we were connecting
                    close_quietly(sock)
                    return False
                self._sock = sock
            self.last_error = None
            log.info("Connected to %s:%d", host, port)
            self.connection_state.set(Connected(f"{host}:{port}"))
            return True

    def send_command(self, direction: Direction) -> bool:
        with self._lock:
            sock = self._sock
            if sock is None:
                return False
            try:
                send_byte(sock, direction.code)
                return True
            except OSError as e:
                err = SendError(e)
        log.warning("%s", err)
        self._fail(err)
        return False

    def is_connected(self) -> bool:
        return self._sock is not None and isinstance(self.state, Connected)

    def disconnect(self) -> None:
        with self._lock:
            self._generation += 1
            sock, self._sock = self._sock, None
        if sock is not None:
            log.debug("Closing client socket")
            close_quietly(sock)
        self.connection_state.set(Disconnected())

    def close(self) -> None:
        self.disconnect()

    def _fail(self, err: SnakeCastError) -> None:
        # Error is always followed by Disconnected
        self.last_error = err
        self.connection_state.set(Error(str(err)))
        self.disconnect()

    def __enter__(self) -> "SocketClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
