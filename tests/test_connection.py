import socket
import time

from conftest import WAIT
from snakecast.errors import ConnectError, SendError
from snakecast.net.protocol import Connected, Connecting, Direction, Disconnected, Error
from snakecast.net.server import SocketServer


def is_connected(state):
    return isinstance(state, Connected)


def is_disconnected(state):
    return isinstance(state, Disconnected)


def test_connect_both_sides(server, client):
    assert server.port > 0
    assert client.connect("127.0.0.1", server.port)
    assert client.state == Connected(f"127.0.0.1:{server.port}")
    assert client.is_connected()
    assert server.connection_state.wait_for(is_connected, WAIT)
    assert server.state.peer_info.startswith("127.0.0.1:")


def test_command_delivered_once(server, client):
    sub = server.commands.subscribe()
    assert client.connect("127.0.0.1", server.port)
    assert client.send_command(Direction.LEFT)
    assert sub.get(timeout=WAIT) is Direction.LEFT
    assert sub.get(timeout=0.2) is None


def test_commands_keep_order(server, client):
    sub = server.commands.subscribe()
    assert client.connect("127.0.0.1", server.port)
    sent = [Direction.UP, Direction.LEFT, Direction.DOWN, Direction.RIGHT, Direction.UP]
    for d in sent:
        assert client.send_command(d)
    assert [sub.get(timeout=WAIT) for _ in sent] == sent


def test_unknown_bytes_are_skipped(server):
    sub = server.commands.subscribe()
    with socket.create_connection(("127.0.0.1", server.port), timeout=WAIT) as raw:
        raw.sendall(bytes([0, 9, 2, 255, 3]))
        assert sub.get(timeout=WAIT) is Direction.DOWN
        assert sub.get(timeout=WAIT) is Direction.LEFT
        assert sub.get(timeout=0.2) is None
        assert server.connection_state.wait_for(is_connected, WAIT)


def test_connect_refused(client, closed_port, recorder):
    seen = recorder(client.connection_state)
    assert client.connect("127.0.0.1", closed_port) is False
    assert len(seen) == 3
    assert seen[0] == Connecting()
    assert isinstance(seen[1], Error)
    assert seen[1].message.startswith(f"Connection failed to 127.0.0.1:{closed_port}")
    assert seen[2] == Disconnected()
    assert isinstance(client.last_error, ConnectError)
    assert not client.send_command(Direction.UP)


def test_send_without_connection(client):
    assert client.send_command(Direction.UP) is False
    assert client.state == Disconnected()


def test_peer_leaving_returns_server_to_disconnected(server, client):
    assert client.connect("127.0.0.1", server.port)
    assert server.connection_state.wait_for(is_connected, WAIT)
    client.disconnect()
    assert client.state == Disconnected()
    assert server.connection_state.wait_for(is_disconnected, WAIT)


def test_second_peer_served_after_first_leaves(server, client):
    sub = server.commands.subscribe()
    assert client.connect("127.0.0.1", server.port)
    assert server.connection_state.wait_for(is_connected, WAIT)
    first_peer = server.state.peer_info

    with socket.create_connection(("127.0.0.1", server.port), timeout=WAIT) as other:
        other.sendall(bytes([Direction.UP.code]))
        # queued in the backlog, not read while the first peer holds the server
        assert sub.get(timeout=0.3) is None
        client.disconnect()
        assert sub.get(timeout=WAIT) is Direction.UP
        assert server.connection_state.wait_for(
            lambda s: is_connected(s) and s.peer_info != first_peer, WAIT
        )


def test_send_failure_reports_error(server, client, recorder):
    assert client.connect("127.0.0.1", server.port)
    assert server.connection_state.wait_for(is_connected, WAIT)
    seen = recorder(client.connection_state)
    server.stop()
    # the first writes can still land in the kernel buffer
    deadline = time.monotonic() + WAIT
    while client.send_command(Direction.UP) and time.monotonic() < deadline:
        time.sleep(0.05)
    assert isinstance(client.last_error, SendError)
    assert isinstance(seen[0], Error)
    assert seen[0].message.startswith("Send failed")
    assert seen[-1] == Disconnected()


def test_connect_replaces_previous_connection(server, client, recorder):
    assert client.connect("127.0.0.1", server.port)
    seen = recorder(client.connection_state)
    assert client.connect("127.0.0.1", server.port)
    assert seen == [Disconnected(), Connecting(), Connected(f"127.0.0.1:{server.port}")]
    assert server.connection_state.wait_for(is_connected, WAIT)


def test_disconnect_is_idempotent(client, recorder):
    seen = recorder(client.connection_state)
    client.disconnect()
    client.disconnect()
    assert seen == []
    assert client.state == Disconnected()


def test_stop_is_idempotent():
    srv = SocketServer(bind="127.0.0.1")
    assert srv.port == -1
    srv.start()
    assert srv.port > 0
    srv.stop()
    srv.stop()
    assert srv.port == -1
    assert srv.state == Disconnected()


def test_stop_with_connected_peer(client):
    srv = SocketServer(bind="127.0.0.1")
    srv.start()
    assert client.connect("127.0.0.1", srv.port)
    assert srv.connection_state.wait_for(is_connected, WAIT)
    srv.stop()
    assert srv.state == Disconnected()
    assert srv.port == -1
