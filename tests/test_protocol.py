import pytest

from snakecast.net.protocol import (
    SERVICE_NAME,
    SERVICE_TYPE,
    Connected,
    DiscoveredEndpoint,
    Direction,
    Disconnected,
    Error,
    decode,
    service_type_fqdn,
)


@pytest.mark.parametrize("direction", list(Direction))
def test_direction_code_roundtrip(direction):
    assert Direction.from_code(direction.code) is direction
    assert decode(direction.encode()) == [direction]


def test_wire_codes_are_fixed():
    assert [d.code for d in (Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT)] == [1, 2, 3, 4]
    assert Direction.LEFT.encode() == b"\x03"


@pytest.mark.parametrize("code", [0x00, 0x05, 0x7F, 0xFF])
def test_unknown_codes_decode_to_nothing(code):
    assert Direction.from_code(code) is None


def test_decode_skips_garbage_and_keeps_order():
    assert decode(b"\x00\x04\x09\x01\xff\x02") == [Direction.RIGHT, Direction.UP, Direction.DOWN]


def test_opposites():
    assert Direction.UP.opposite() is Direction.DOWN
    assert Direction.LEFT.opposite() is Direction.RIGHT
    for d in Direction:
        assert d.opposite().opposite() is d


def test_service_identity():
    assert SERVICE_TYPE == "_snakecast._tcp."
    assert SERVICE_NAME == "SnakeCast-TV"
    assert service_type_fqdn() == "_snakecast._tcp.local."


def test_connection_states_compare_by_value():
    assert Disconnected() == Disconnected()
    assert Connected("1.2.3.4:5") == Connected("1.2.3.4:5")
    assert Connected("a") != Connected("b")
    assert Error("x") != Disconnected()


def test_endpoint_is_immutable_and_hashable():
    ep = DiscoveredEndpoint("SnakeCast-TV", "10.0.0.2", 4242)
    assert ep.address == ("10.0.0.2", 4242)
    assert len({ep, DiscoveredEndpoint("SnakeCast-TV", "10.0.0.2", 4242)}) == 1
    with pytest.raises(Exception):
        ep.port = 1
