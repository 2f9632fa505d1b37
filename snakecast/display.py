from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .config import GameConfig, NetConfig
from .errors import RegistrationError
from .net.discovery import ServicePublisher
from .net.protocol import Direction
from .net.server import SocketServer
from .net.streams import Subscription
from .snake.engine import GameEngine

log = logging.getLogger(__name__)


class DisplayHost:
    """Everything the display device runs: listener, advertisement and game.

    Owned explicitly by whoever creates it; call close() when done.
    """

    def __init__(
        self,
        game_config: Optional[GameConfig] = None,
        net_config: Optional[NetConfig] = None,
        engine: Optional[GameEngine] = None,
        server: Optional[SocketServer] = None,
        publisher: Optional[ServicePublisher] = None,
        advertise: bool = True,
    ) -> None:
        self.net_config = net_config or NetConfig()
        self.engine = engine or GameEngine(game_config)
        self.server = server or SocketServer(self.net_config.bind, self.net_config.command_capacity)
        self.advertise = advertise
        self.publisher = publisher
        if self.publisher is None and advertise:
            self.publisher = ServicePublisher(service_name=self.net_config.service_name)
        self.service_name: Optional[str] = None
        self._commands: Optional[Subscription[Direction]] = None
        self._pump: Optional[threading.Thread] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._started = False
        self._lock = threading.Lock()

    @property
    def port(self) -> int:
        return self.server.port

    def start(self) -> int:
        with self._lock:
            if self._started:
                return self.server.port
            self._started = True

        # subscribe before listening so no early command is lost
        self._commands = self.server.commands.subscribe()
        self._pump = threading.Thread(
            target=self._pump_commands, args=(self._commands,), name="snakecast-commands", daemon=True
        )
        self._pump.start()
        self._unsubscribe = self.server.connection_state.subscribe(self.engine.update_connection_state)

        port = self.server.start()
        if self.publisher is not None:
            try:
                self.service_name = self.publisher.register(port)
            except RegistrationError:
                # the game still works with a manually entered address
                log.exception("Could not advertise the display; controllers must connect by address")
        return port

    def _pump_commands(self, commands: Subscription[Direction]) -> None:
        for direction in commands:
            self.engine.change_direction(direction)

    def close(self) -> None:
        with self._lock:
            if not self._started:
                self.engine.close()
                return
            self._started = False
        if self.publisher is not None:
            self.publisher.close()
        self.server.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._commands is not None:
            self._commands.close()
            self._commands = None
        if self._pump is not None:
            self._pump.join(timeout=2.0)
            self._pump = None
        self.engine.close()

    def __enter__(self) -> "DisplayHost":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
