from __future__ import annotations

import logging
import queue
import threading
import time
from typing import List, Optional

from .config import NetConfig
from .net.client import SocketClient
from .net.discovery import DiscoveryBrowser
from .net.protocol import ConnectionState, DiscoveredEndpoint, Direction
from .net.streams import StateStream

log = logging.getLogger(__name__)


class Controller:
    """The handheld side: find a display, connect, push directions.

    send_direction() never blocks the caller; a single sender thread writes
    the bytes in the order they were requested. Failed sends are not retried.
    """

    def __init__(
        self,
        net_config: Optional[NetConfig] = None,
        client: Optional[SocketClient] = None,
        browser: Optional[DiscoveryBrowser] = None,
    ) -> None:
        self.net_config = net_config or NetConfig()
        self.client = client or SocketClient(self.net_config.connect_timeout_ms)
        self._browser = browser
        self.last_direction: StateStream[Optional[Direction]] = StateStream(None)
        self._outbox: "queue.Queue[Optional[Direction]]" = queue.Queue()
        self._sender: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def browser(self) -> DiscoveryBrowser:
        if self._browser is None:
            self._browser = DiscoveryBrowser(resolve_timeout_ms=self.net_config.resolve_timeout_ms)
        return self._browser

    @property
    def connection_state(self) -> StateStream[ConnectionState]:
        return self.client.connection_state

    def scan(self, timeout: float = 3.0) -> List[DiscoveredEndpoint]:
        """Collect displays seen within ``timeout`` seconds, one per (host, port)."""
        found: List[DiscoveredEndpoint] = []
        seen = set()
        deadline = time.monotonic() + timeout
        results = self.browser.discover()
        stopper = threading.Timer(timeout, self.browser.stop)
        stopper.daemon = True
        stopper.start()
        try:
            for endpoint in results:
                if endpoint.address not in seen:
                    seen.add(endpoint.address)
                    found.append(endpoint)
                if time.monotonic() >= deadline:
                    break
        finally:
            stopper.cancel()
            results.close()
        return found

    def stop_scanning(self) -> None:
        if self._browser is not None:
            self._browser.stop()

    def connect_to(self, endpoint: DiscoveredEndpoint) -> bool:
        self.stop_scanning()
        return self.connect(endpoint.host, endpoint.port)

    def connect(self, host: str, port: int) -> bool:
        return self.client.connect(host, port)

    def send_direction(self, direction: Direction) -> None:
        self.last_direction.set(direction)
        with self._lock:
            if self._closed:
                return
            if self._sender is None:
                self._sender = threading.Thread(target=self._send_loop, name="snakecast-sender", daemon=True)
                self._sender.start()
        self._outbox.put(direction)

    def _send_loop(self) -> None:
        while True:
            direction = self._outbox.get()
            if direction is None:
                return
            if not self.client.send_command(direction):
                log.debug("Dropped %s: not connected", direction.name)

    def disconnect(self) -> None:
        self.client.disconnect()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            sender, self._sender = self._sender, None
        if sender is not None:
            self._outbox.put(None)
            sender.join(timeout=2.0)
        if self._browser is not None:
            self._browser.close()
        self.client.disconnect()

    def __enter__(self) -> "Controller":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
