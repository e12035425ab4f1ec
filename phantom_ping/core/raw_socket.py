"""
Raw Socket Module - raw ICMP/ICMPv6 transport for the echo engine.

Features:
- Raw socket creation for a protocol family / protocol number
- Kernel send/receive timeouts (SO_SNDTIMEO / SO_RCVTIMEO)
- select()-based timeout mode for sockets that reject those options
- Reads that fail promptly with ClosedResource when closed concurrently
- Root privilege detection

No locking is done here: a socket belongs to one session and one flow of
control at a time.
"""

import logging
import os
import select
import socket
import struct
import time
from typing import Optional, Tuple

from .errors import ClosedResource, EchoTimeout, TransportUnavailable
from .network_utils import get_source_address, sockaddr_to_bytes

# Setup logging
security_logger = logging.getLogger('security')
logger = logging.getLogger(__name__)

# Longest a blocked read or write goes without checking for close()
CANCEL_POLL_INTERVAL = 0.25


def is_root() -> bool:
    """
    Check if running as root.

    Returns:
        bool: True if running with root privileges
    """
    return hasattr(os, 'geteuid') and os.geteuid() == 0


def _timeval(seconds: float) -> bytes:
    whole = int(seconds)
    return struct.pack('@ll', whole, int((seconds - whole) * 1_000_000))


class RawSocket:
    """
    Raw socket bound to one address family and protocol.

    Usage:
        sock = RawSocket()
        sock.open(socket.AF_INET, socket.IPPROTO_ICMP)
        sock.set_receive_timeout(10.0)
        nbytes, source = sock.read(buffer)
        sock.close()
    """

    def __init__(self, sock: Optional[socket.socket] = None):
        """
        Args:
            sock: Already opened socket to wrap (mostly for tests)
        """
        self._sock = sock
        self._family = sock.family if sock is not None else None
        self._closed = False
        self._use_select_timeout = False
        self._send_timeout: Optional[float] = None
        self._receive_timeout: Optional[float] = None

    def open(self, family: int, protocol: int) -> None:
        """
        Open a raw socket.

        Raises:
            TransportUnavailable: If the socket cannot be created, usually
                because raw sockets need root (CAP_NET_RAW)
        """
        if self._sock is not None:
            raise ValueError("Raw socket already open")
        try:
            self._sock = socket.socket(family, socket.SOCK_RAW, protocol)
        except PermissionError as e:
            security_logger.warning("Raw socket denied (family=%s protocol=%s, root=%s): %s",
                                    family, protocol, is_root(), e)
            raise TransportUnavailable(
                f"Raw sockets require root privileges: {e}") from e
        except OSError as e:
            raise TransportUnavailable(f"Cannot open raw socket: {e}") from e
        self._family = family
        self._closed = False
        logger.debug("Opened raw socket family=%s protocol=%s", family, protocol)

    @property
    def family(self) -> Optional[int]:
        return self._family

    @property
    def closed(self) -> bool:
        return self._closed or self._sock is None

    @property
    def use_select_timeout(self) -> bool:
        return self._use_select_timeout

    def set_use_select_timeout(self, enabled: bool) -> None:
        """Track timeouts with select() instead of socket options."""
        self._use_select_timeout = enabled

    def _require_open(self) -> socket.socket:
        if self._closed or self._sock is None:
            raise ClosedResource("Raw socket is closed")
        return self._sock

    def set_send_timeout(self, seconds: float) -> None:
        """
        Raises:
            OSError: If the platform rejects SO_SNDTIMEO for this socket
        """
        sock = self._require_open()
        if not self._use_select_timeout:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDTIMEO, _timeval(seconds))
        self._send_timeout = seconds

    def set_receive_timeout(self, seconds: float) -> None:
        """
        Raises:
            OSError: If the platform rejects SO_RCVTIMEO for this socket
        """
        sock = self._require_open()
        if not self._use_select_timeout:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVTIMEO, _timeval(seconds))
        self._receive_timeout = seconds

    def _wait(self, sock: socket.socket, writable: bool, timeout: Optional[float]) -> None:
        """Block until the socket is ready, closed, or the timeout runs out."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if self._closed:
                raise ClosedResource("Raw socket closed while waiting")
            remaining = None if deadline is None else deadline - time.monotonic()
            wait = CANCEL_POLL_INTERVAL
            if remaining is not None:
                wait = max(0.0, min(remaining, CANCEL_POLL_INTERVAL))
            try:
                if writable:
                    _, ready, _ = select.select([], [sock], [], wait)
                else:
                    ready, _, _ = select.select([sock], [], [], wait)
            except (OSError, ValueError) as e:
                if self._closed:
                    raise ClosedResource("Raw socket closed while waiting") from e
                raise
            if ready:
                return
            if remaining is not None and remaining <= wait:
                raise EchoTimeout(f"Timed out after {timeout:.3f}s")

    def write(self, address: str, buffer, offset: int = 0, length: Optional[int] = None) -> int:
        """
        Send ``buffer[offset:offset + length]`` to ``address``.

        Returns:
            int: Number of bytes sent
        """
        sock = self._require_open()
        if length is None:
            length = len(buffer) - offset
        if self._use_select_timeout:
            self._wait(sock, True, self._send_timeout)
        view = memoryview(buffer)[offset:offset + length]
        try:
            return sock.sendto(view, (address, 0))
        except (socket.timeout, BlockingIOError) as e:
            raise EchoTimeout(f"Send to {address} timed out") from e
        except OSError as e:
            if self._closed:
                raise ClosedResource("Raw socket closed during send") from e
            raise

    def read(self,
             buffer,
             offset: int = 0,
             length: Optional[int] = None,
             timeout: Optional[float] = None) -> Tuple[int, bytes]:
        """
        Receive one frame into ``buffer`` starting at ``offset``.

        IPv4 raw sockets deliver the IP header with the frame, IPv6 raw
        sockets deliver the ICMPv6 message only.

        Args:
            buffer: Writable buffer
            offset: Where the frame is stored
            length: Maximum bytes to store (default: rest of the buffer)
            timeout: Seconds to wait (default: the receive timeout)

        Returns:
            (bytes received, packed source address)

        Raises:
            EchoTimeout: If nothing arrives in time
            ClosedResource: If the socket is or gets closed
        """
        sock = self._require_open()
        if length is None:
            length = len(buffer) - offset
        if timeout is None:
            timeout = self._receive_timeout
        if timeout is not None or self._use_select_timeout:
            self._wait(sock, False, timeout)
        view = memoryview(buffer)[offset:offset + length]
        try:
            nbytes, sockaddr = sock.recvfrom_into(view, length)
        except (socket.timeout, BlockingIOError) as e:
            raise EchoTimeout("Receive timed out") from e
        except OSError as e:
            if self._closed:
                raise ClosedResource("Raw socket closed during receive") from e
            raise
        return nbytes, sockaddr_to_bytes(sockaddr, self._family)

    def get_source_address_for_destination(self, destination: str) -> bytes:
        """Packed local address used to reach ``destination``."""
        self._require_open()
        return get_source_address(destination, self._family)

    def close(self) -> None:
        """Close the socket. Blocked reads fail with ClosedResource."""
        if self._closed:
            return
        self._closed = True
        if self._sock is not None:
            self._sock.close()
            logger.debug("Closed raw socket")
