# tests/conftest.py
import os
import random
import socket
import sys
import threading

# Headless SDL in case anything pulls in pygame
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

# Ensure project root is importable when running from a checkout
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import pytest

from snakecast.config import GameConfig
from snakecast.net.client import SocketClient
from snakecast.net.server import SocketServer
from snakecast.snake.engine import GameEngine

WAIT = 5.0  # upper bound for anything that crosses a thread or socket


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def engine_factory():
    made = []

    def make(**overrides):
        # long ticks by default so the scheduler never interferes with a test
        overrides.setdefault("initial_tick_ms", 60_000)
        overrides.setdefault("min_tick_ms", 50)
        overrides.setdefault("seed", 7)
        engine = GameEngine(GameConfig(**overrides))
        made.append(engine)
        return engine

    yield make
    for engine in made:
        engine.close()


@pytest.fixture
def server():
    srv = SocketServer(bind="127.0.0.1")
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def client():
    c = SocketClient(connect_timeout_ms=2000)
    yield c
    c.disconnect()


@pytest.fixture
def closed_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.fixture
def recorder():
    """Subscribe to a StateStream and keep every transition seen afterwards."""
    unsubs = []

    def attach(stream):
        seen = []
        lock = threading.Lock()

        def on_value(value):
            with lock:
                seen.append(value)

        unsubs.append(stream.subscribe(on_value, replay=False))
        return seen

    yield attach
    for unsub in unsubs:
        unsub()


# --------------------------- fake discovery transport ---------------------------

class FakeInfo:
    def __init__(self, addresses, port):
        self._addresses = list(addresses)
        self.port = port

    def parsed_addresses(self):
        return list(self._addresses)


class FakeZeroconf:
    def __init__(self, rename_to=None, register_error=None, on_register=None):
        self.rename_to = rename_to
        self.register_error = register_error
        self.on_register = on_register
        self.registered = []
        self.unregistered = []
        self.services = {}
        self.closed = False

    def register_service(self, info, allow_name_change=False, **kwargs):
        if self.register_error is not None:
            raise self.register_error
        if self.rename_to is not None and allow_name_change:
            info.name = f"{self.rename_to}.{info.type}"
        self.registered.append(info)
        if self.on_register is not None:
            self.on_register()

    def unregister_service(self, info):
        self.unregistered.append(info)

    def get_service_info(self, type_, name, timeout=3000):
        return self.services.get(name)

    def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, zc, type_, handlers):
        self.zc = zc
        self.type_ = type_
        self.handlers = list(handlers)
        self.cancel_calls = 0

    def fire(self, name, state_change, service_type=None):
        for handler in self.handlers:
            handler(
                zeroconf=self.zc,
                service_type=service_type or self.type_,
                name=name,
                state_change=state_change,
            )

    def cancel(self):
        self.cancel_calls += 1


class FakeBrowserFactory:
    def __init__(self, on_create=None, error=None):
        self.browsers = []
        self.on_create = on_create
        self.error = error

    def __call__(self, zc, type_, handlers):
        if self.error is not None:
            raise self.error
        browser = FakeBrowser(zc, type_, handlers)
        self.browsers.append(browser)
        if self.on_create is not None:
            self.on_create(browser)
        return browser

    @property
    def last(self):
        return self.browsers[-1]


@pytest.fixture
def fake_zc():
    return FakeZeroconf()
