from __future__ import annotations

import logging
import socket
import threading
from typing import Optional

from .net import accept_peer, close_quietly, open_listener, recv_byte
from .protocol import Connected, ConnectionState, Direction, Disconnected, Error
from .streams import CommandBroadcast, StateStream

log = logging.getLogger(__name__)

DEFAULT_COMMAND_CAPACITY = 64
ACCEPT_POLL_INTERVAL = 0.25


class SocketServer:
    """Display side of the link.

    Listens on an OS-assigned port and serves a single peer at a time:
    while a controller is connected no other connection is accepted. Every
    valid command byte is republished on ``commands``.
    """

    def __init__(self, bind: str = "0.0.0.0", command_capacity: int = DEFAULT_COMMAND_CAPACITY) -> None:
        self.bind = bind
        self.connection_state: StateStream[ConnectionState] = StateStream(Disconnected())
        self.commands: CommandBroadcast[Direction] = CommandBroadcast(command_capacity)
        self._srv: Optional[socket.socket] = None
        self._peer: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()
        self._lock = threading.Lock()

    @property
    def state(self) -> ConnectionState:
        return self.connection_state.value

    @property
    def port(self) -> int:
        srv = self._srv
        if srv is None:
            return -1
        return srv.getsockname()[1]

    def start(self) -> int:
        try:
            srv = open_listener(self.bind, 0, poll_interval=ACCEPT_POLL_INTERVAL)
        except OSError as e:
            self.connection_state.set(Error(f"Failed to start server: {e}"))
            raise
        stopped = threading.Event()
        with self._lock:
            self._srv = srv
            self._stopped = stopped
        port = srv.getsockname()[1]
        log.info("Listening for controllers on %s:%d", self.bind, port)
        self._thread = threading.Thread(
            target=self._accept_loop, args=(srv, stopped), name="snakecast-accept", daemon=True
        )
        self._thread.start()
        return port

    def _accept_loop(self, srv: socket.socket, stopped: threading.Event) -> None:
        while not stopped.is_set():
            self.connection_state.set(Disconnected())
            try:
                conn, addr = accept_peer(srv)
            except socket.timeout:
                continue
            except OSError as e:
                if stopped.is_set():
                    break
                log.warning("Accept failed: %s", e)
                self.connection_state.set(Error(f"Connection error: {e}"))
                stopped.wait(ACCEPT_POLL_INTERVAL)
                continue

            with self._lock:
                if stopped.is_set():
                    close_quietly(conn)
                    break
                self._peer = conn
            peer = f"{addr[0]}:{addr[1]}"
            log.info("Controller connected from %s", peer)
            self.connection_state.set(Connected(peer))
            # the accept loop stays parked here until this peer goes away
            self._serve_peer(conn, stopped)
            log.info("Controller %s disconnected", peer)
        self.connection_state.set(Disconnected())

    def _serve_peer(self, conn: socket.socket, stopped: threading.Event) -> None:
        try:
            while not stopped.is_set():
                value = recv_byte(conn)
                if value is None:
                    break
                direction = Direction.from_code(value)
                if direction is None:
                    log.debug("Ignoring unknown command byte 0x%02x", value)
                    continue
                self.commands.publish(direction)
        except OSError as e:
            if not stopped.is_set():
                log.debug("Peer read failed: %s", e)
        finally:
            with self._lock:
                if self._peer is conn:
                    self._peer = None
            close_quietly(conn)
            self.connection_state.set(Disconnected())

    def stop(self) -> None:
        with self._lock:
            self._stopped.set()
            srv, self._srv = self._srv, None
            peer, self._peer = self._peer, None
        close_quietly(peer)
        close_quietly(srv)
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self.connection_state.set(Disconnected())

    def close(self) -> None:
        self.stop()

    def __enter__(self) -> "SocketServer":
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
