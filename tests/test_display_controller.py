import pytest
from zeroconf import ServiceStateChange

from conftest import WAIT, FakeBrowserFactory, FakeInfo, FakeZeroconf
from snakecast.config import GameConfig, NetConfig
from snakecast.controller import Controller
from snakecast.display import DisplayHost
from snakecast.net.client import SocketClient
from snakecast.net.discovery import DiscoveryBrowser, ServicePublisher
from snakecast.net.protocol import Connected, DiscoveredEndpoint, Direction, service_type_fqdn
from snakecast.snake.game import GameStatus

SLOW = GameConfig(initial_tick_ms=60_000, min_tick_ms=50, seed=7)
LOCAL = NetConfig(bind="127.0.0.1", connect_timeout_ms=2000)


@pytest.fixture
def host():
    h = DisplayHost(SLOW, LOCAL, advertise=False)
    h.start()
    yield h
    h.close()


@pytest.fixture
def controller():
    c = Controller(LOCAL)
    yield c
    c.close()


def status_is(status):
    return lambda s: s.status is status


def test_controller_drives_the_game(host, controller):
    engine = host.engine
    assert engine.state.status is GameStatus.WAITING
    assert controller.connect("127.0.0.1", host.port)
    assert engine.game_state.wait_for(status_is(GameStatus.RUNNING), WAIT)
    assert engine.state.is_controller_connected

    controller.send_direction(Direction.UP)
    assert controller.last_direction.value is Direction.UP
    assert engine.game_state.wait_for(lambda s: s.next_direction is Direction.UP, WAIT)

    controller.disconnect()
    assert engine.game_state.wait_for(status_is(GameStatus.PAUSED), WAIT)
    assert not engine.state.is_controller_connected


def test_first_command_resumes_after_reconnect(host, controller):
    engine = host.engine
    assert controller.connect("127.0.0.1", host.port)
    assert engine.game_state.wait_for(status_is(GameStatus.RUNNING), WAIT)
    controller.disconnect()
    assert engine.game_state.wait_for(status_is(GameStatus.PAUSED), WAIT)

    assert controller.connect("127.0.0.1", host.port)
    assert engine.game_state.wait_for(lambda s: s.is_controller_connected, WAIT)
    assert engine.state.status is GameStatus.PAUSED
    controller.send_direction(Direction.DOWN)
    assert engine.game_state.wait_for(status_is(GameStatus.RUNNING), WAIT)


def test_send_while_disconnected_is_dropped(controller):
    controller.send_direction(Direction.LEFT)
    assert controller.last_direction.value is Direction.LEFT
    assert controller.client.state == controller.connection_state.value


def test_host_advertises_and_withdraws():
    zc = FakeZeroconf()
    publisher = ServicePublisher(zeroconf=zc, host="127.0.0.1")
    h = DisplayHost(SLOW, LOCAL, publisher=publisher)
    port = h.start()
    try:
        assert port == h.port > 0
        assert h.service_name == "SnakeCast-TV"
        assert zc.registered[0].port == port
    finally:
        h.close()
    assert len(zc.unregistered) == 1
    assert h.port == -1


def test_host_runs_without_advertisement_on_failure():
    zc = FakeZeroconf(register_error=RuntimeError("mdns down"))
    h = DisplayHost(SLOW, LOCAL, publisher=ServicePublisher(zeroconf=zc, host="127.0.0.1"))
    try:
        assert h.start() > 0
        assert h.service_name is None
        client = SocketClient(2000)
        assert client.connect("127.0.0.1", h.port)
        assert h.engine.game_state.wait_for(status_is(GameStatus.RUNNING), WAIT)
        client.disconnect()
    finally:
        h.close()


def test_host_close_is_idempotent():
    h = DisplayHost(SLOW, LOCAL, advertise=False)
    h.start()
    h.close()
    h.close()
    assert not h.engine.ticking


def test_scan_deduplicates_endpoints():
    zc = FakeZeroconf()
    fqdn = service_type_fqdn()
    zc.services[f"tv.{fqdn}"] = FakeInfo(["10.0.0.5"], 6000)
    zc.services[f"den.{fqdn}"] = FakeInfo(["10.0.0.6"], 6001)

    def announce(browser):
        for name in ("tv", "tv", "den"):
            browser.fire(f"{name}.{fqdn}", ServiceStateChange.Added)

    factory = FakeBrowserFactory(on_create=announce)
    c = Controller(LOCAL, browser=DiscoveryBrowser(zeroconf=zc, browser_factory=factory))
    try:
        found = c.scan(timeout=0.5)
    finally:
        c.close()
    assert sorted((e.service_name, e.address) for e in found) == [
        ("den", ("10.0.0.6", 6001)),
        ("tv", ("10.0.0.5", 6000)),
    ]
    assert factory.last.cancel_calls == 1


def test_connect_to_endpoint(host, controller):
    endpoint = DiscoveredEndpoint("SnakeCast-TV", "127.0.0.1", host.port)
    assert controller.connect_to(endpoint)
    assert isinstance(controller.connection_state.value, Connected)
