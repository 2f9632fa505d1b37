from __future__ import annotations

import socket
from typing import Optional, Tuple


# Raw single-byte command transport over TCP


def open_listener(bind: str, port: int = 0, poll_interval: Optional[float] = None) -> socket.socket:
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        srv.bind((bind, port))
        srv.listen(1)
    except OSError:
        srv.close()
        raise
    # accept() wakes up every poll_interval so a stop request is noticed
    srv.settimeout(poll_interval)
    return srv


def accept_peer(srv: socket.socket) -> Tuple[socket.socket, Tuple[str, int]]:
    conn, addr = srv.accept()
    conn.settimeout(None)
    set_low_latency(conn)
    return conn, addr


def open_client(host: str, port: int, timeout: float) -> socket.socket:
    sock = socket.create_connection((host, port), timeout=timeout)
    sock.settimeout(None)
    set_low_latency(sock)
    return sock


def set_low_latency(sock: socket.socket) -> None:
    # commands are single latency-sensitive bytes: no Nagle coalescing
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)


def send_byte(sock: socket.socket, value: int) -> None:
    sock.sendall(bytes((value,)))


def recv_byte(sock: socket.socket) -> Optional[int]:
    # None on orderly end-of-stream
    chunk = sock.recv(1)
    if not chunk:
        return None
    return chunk[0]


def close_quietly(sock: Optional[socket.socket]) -> None:
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    try:
        sock.close()
    except OSError:
        pass


def local_ip() -> str:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            # no packet is sent; this only picks the outbound interface
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
    except OSError:
        return "127.0.0.1"
