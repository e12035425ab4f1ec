import queue
import socket
import struct

import pytest

from phantom_ping.core.checksum import icmp_checksum
from phantom_ping.core.errors import ClosedResource, EchoTimeout

LOOPBACK_V4 = socket.inet_pton(socket.AF_INET, "127.0.0.1")
LOOPBACK_V6 = socket.inet_pton(socket.AF_INET6, "::1")


def icmp_message(icmp_type, identifier, sequence, payload=b'', code=0):
    """ICMP/ICMPv6 echo message with a valid IPv4-style checksum."""
    header = struct.pack('!BBHHH', icmp_type, code, 0, identifier, sequence)
    message = bytearray(header + payload)
    struct.pack_into('!H', message, 2, icmp_checksum(message))
    return bytes(message)


def ipv4_frame(message, source=LOOPBACK_V4, ttl=64, header_words=5):
    """Wrap an ICMP message in an IPv4 header as a raw socket delivers it."""
    options = bytes((header_words - 5) * 4)
    total = header_words * 4 + len(message)
    header = struct.pack('!BBHHHBBH4s4s', 0x40 | header_words, 0, total, 0, 0,
                         ttl, socket.IPPROTO_ICMP, 0, source, LOOPBACK_V4)
    return header + options + message


class FakeTransport:
    """
    In-memory stand-in for RawSocket.

    Frames queued with ``push()`` are delivered in order. With ``loopback``
    set, every echo request written is answered with the matching reply.
    ``flood`` is delivered whenever the queue is empty. Requests whose
    sequence number is in ``drop_sequences`` are never answered.
    """

    def __init__(self, loopback=False, source_address=None, reject_native_timeouts=False,
                 drop_sequences=()):
        self.loopback = loopback
        self.drop_sequences = set(drop_sequences)
        self.source_address = source_address
        self.reject_native_timeouts = reject_native_timeouts
        self.frames = queue.Queue()
        self.flood = None
        self.writes = []
        self.family = None
        self.protocol = None
        self.use_select_timeout = False
        self.send_timeout = None
        self.receive_timeout = None
        self.closed = False

    # transport contract -------------------------------------------------

    def open(self, family, protocol):
        self.family = family
        self.protocol = protocol

    def set_use_select_timeout(self, enabled):
        self.use_select_timeout = enabled

    def set_send_timeout(self, seconds):
        if self.reject_native_timeouts and not self.use_select_timeout:
            raise OSError(92, "Protocol not available")
        self.send_timeout = seconds

    def set_receive_timeout(self, seconds):
        if self.reject_native_timeouts and not self.use_select_timeout:
            raise OSError(92, "Protocol not available")
        self.receive_timeout = seconds

    def write(self, address, buffer, offset=0, length=None):
        if self.closed:
            raise ClosedResource("closed")
        if length is None:
            length = len(buffer) - offset
        data = bytes(buffer[offset:offset + length])
        self.writes.append((address, data))
        if self.loopback:
            self._answer(data)
        return length

    def read(self, buffer, offset=0, length=None, timeout=None):
        if self.closed:
            raise ClosedResource("closed")
        if length is None:
            length = len(buffer) - offset
        try:
            if self.flood is not None:
                frame, source = self.frames.get_nowait()
            else:
                frame, source = self.frames.get(timeout=timeout)
        except queue.Empty:
            if self.flood is None:
                raise EchoTimeout("fake timeout")
            frame, source = self.flood
        if self.closed:
            raise ClosedResource("closed")
        frame = frame[:length]
        buffer[offset:offset + len(frame)] = frame
        return len(frame), source

    def get_source_address_for_destination(self, destination):
        return self.source_address

    def close(self):
        self.closed = True

    # helpers ------------------------------------------------------------

    def push(self, frame, source=None):
        if source is None:
            source = LOOPBACK_V6 if self.family == socket.AF_INET6 else LOOPBACK_V4
        self.frames.put((frame, source))

    def _answer(self, request):
        icmp_type, _, _, identifier, sequence = struct.unpack_from('!BBHHH', request)
        if sequence in self.drop_sequences:
            return
        if self.family == socket.AF_INET6:
            self.push(icmp_message(129, identifier, sequence, request[8:]))
        else:
            self.push(ipv4_frame(icmp_message(0, identifier, sequence, request[8:])))


class CountingClock:
    """Monotonic fake clock advancing by ``step`` nanoseconds per call."""

    def __init__(self, start=1_000_000, step=1000):
        self.now = start
        self.step = step

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def loopback_transport():
    return FakeTransport(loopback=True)


@pytest.fixture
def clock():
    return CountingClock()
