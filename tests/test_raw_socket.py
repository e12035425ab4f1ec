import socket
import struct
import threading
import time

import pytest

from phantom_ping.core import raw_socket
from phantom_ping.core.errors import ClosedResource, EchoTimeout, TransportUnavailable
from phantom_ping.core.raw_socket import RawSocket


@pytest.fixture
def pair():
    left, right = socket.socketpair()
    yield left, right
    left.close()
    right.close()


def test_timeval_layout():
    assert struct.unpack('@ll', raw_socket._timeval(1.5)) == (1, 500000)
    assert struct.unpack('@ll', raw_socket._timeval(0.25)) == (0, 250000)


def test_read_times_out(pair):
    sock = RawSocket(pair[0])
    started = time.monotonic()
    with pytest.raises(EchoTimeout):
        sock.read(bytearray(64), timeout=0.1)
    assert time.monotonic() - started < 1.0


def test_select_mode_uses_receive_timeout(pair):
    sock = RawSocket(pair[0])
    sock.set_use_select_timeout(True)
    sock.set_receive_timeout(0.1)
    assert sock.use_select_timeout
    with pytest.raises(EchoTimeout):
        sock.read(bytearray(64))


def test_native_receive_timeout(pair):
    sock = RawSocket(pair[0])
    sock.set_receive_timeout(0.1)
    with pytest.raises(EchoTimeout):
        sock.read(bytearray(64))


def test_operations_after_close(pair):
    sock = RawSocket(pair[0])
    sock.close()
    assert sock.closed
    with pytest.raises(ClosedResource):
        sock.read(bytearray(64), timeout=0.1)
    with pytest.raises(ClosedResource):
        sock.write("127.0.0.1", b'\x00' * 8)
    with pytest.raises(ClosedResource):
        sock.set_receive_timeout(1.0)
    sock.close()


def test_close_interrupts_blocked_read(pair):
    sock = RawSocket(pair[0])
    outcome = []
    ready = threading.Event()

    def reader():
        ready.set()
        try:
            sock.read(bytearray(64), timeout=10.0)
        except Exception as e:
            outcome.append(e)

    thread = threading.Thread(target=reader)
    thread.start()
    ready.wait(1.0)
    time.sleep(0.1)

    started = time.monotonic()
    sock.close()
    thread.join(5.0)

    assert not thread.is_alive()
    assert time.monotonic() - started < 2.0
    assert len(outcome) == 1
    assert isinstance(outcome[0], ClosedResource)


def test_open_without_privilege(monkeypatch):
    def denied(*args, **kwargs):
        raise PermissionError(1, "Operation not permitted")

    monkeypatch.setattr(raw_socket.socket, "socket", denied)
    with pytest.raises(TransportUnavailable):
        RawSocket().open(socket.AF_INET, socket.IPPROTO_ICMP)


def test_open_unsupported_protocol(monkeypatch):
    def unsupported(*args, **kwargs):
        raise OSError(93, "Protocol not supported")

    monkeypatch.setattr(raw_socket.socket, "socket", unsupported)
    with pytest.raises(TransportUnavailable):
        RawSocket().open(socket.AF_INET6, 58)


def test_open_twice(pair):
    with pytest.raises(ValueError):
        RawSocket(pair[0]).open(socket.AF_INET, socket.IPPROTO_ICMP)


def test_is_root_matches_euid():
    if hasattr(raw_socket.os, 'geteuid'):
        assert raw_socket.is_root() == (raw_socket.os.geteuid() == 0)
    else:
        assert not raw_socket.is_root()
