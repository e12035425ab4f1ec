"""
Echo Session - ICMP / ICMPv6 Echo request construction and reply correlation.

A session is bound to one identifier and one address-family variant. It
owns one send buffer, one receive buffer and one raw socket:

    session = EchoSession(identifier=0x1234, variant=IPV4)
    rtt_ns = session.ping("127.0.0.1")
    session.close()

Open -> Closed is the only state change. Every operation after close()
raises ClosedResource. Sessions do no locking: one sending flow and one
receiving flow may share a session when they coordinate externally (see
PeriodicPinger), nothing more.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional, Tuple

from .echo_packet import (DEFAULT_DATA_LENGTH, MAX_IPV4_HEADER_WORDS, TIMESTAMP_LENGTH,
                          EchoPacket)
from .errors import ClosedResource, EchoTimeout
from .network_utils import address_to_bytes, bytes_to_address, default_identifier, resolve_address
from .raw_socket import RawSocket
from .variants import IPV4, EchoVariant, variant_for_family

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

# listener(packet, data_offset, source_address)
EchoReplyListener = Callable[[EchoPacket, int, bytes], None]


@dataclass
class SessionConfig:
    """Configuration for an echo session."""
    timeout: float = DEFAULT_TIMEOUT  # seconds, applied to send and receive
    data_length: int = DEFAULT_DATA_LENGTH


class EchoReply(NamedTuple):
    """A matched echo reply.

    ``packet`` is the session's receive view and is overwritten by the next
    receive; the remaining fields are copied out when the reply matches.
    """
    packet: EchoPacket
    data_offset: int
    source_address: bytes
    sequence_number: int = 0
    round_trip_ns: int = 0

    @property
    def source(self) -> str:
        return bytes_to_address(self.source_address)

    @property
    def round_trip_ms(self) -> float:
        return self.round_trip_ns / 1e6


class EchoSession:
    """
    Sends echo requests and waits for the matching echo replies.

    Args:
        identifier: 16-bit echo identifier (default: derived from the PID)
        variant: IPV4 or IPV6
        config: Timeout and payload size
        transport: Raw socket implementation (default: RawSocket)
        clock: Monotonic nanosecond clock used for the embedded timestamp

    Raises:
        TransportUnavailable: If the raw socket cannot be opened
        ValueError: If the identifier or the session config is out of range
    """

    def __init__(self,
                 identifier: Optional[int] = None,
                 variant: EchoVariant = IPV4,
                 config: Optional[SessionConfig] = None,
                 transport=None,
                 clock: Callable[[], int] = time.monotonic_ns):
        if identifier is None:
            identifier = default_identifier()
        if not 0 <= identifier <= 0xFFFF:
            raise ValueError(f"Identifier must be 0..65535, got {identifier}")
        config = config or SessionConfig()
        if config.timeout <= 0:
            raise ValueError(f"Timeout must be > 0 seconds, got {config.timeout}")
        if config.data_length < TIMESTAMP_LENGTH:
            raise ValueError(
                f"Data length must be >= {TIMESTAMP_LENGTH} to hold the timestamp, "
                f"got {config.data_length}")

        self.identifier = identifier
        self.variant = variant
        self.config = config
        self._clock = clock
        self._sequence = 0
        self._listener: Optional[EchoReplyListener] = None
        self._closed = False
        # (destination as given, numeric address) of the last send
        self._last_destination: Optional[Tuple[str, str]] = None
        self._source_address = bytes(variant.address_length)

        self.send_packet = variant.new_packet(self.config.data_length)
        self.recv_packet = variant.new_packet(self.config.data_length)
        self._send_data = self.send_packet.allocate()
        # room for IPv4 options in received headers
        self._recv_data = self.recv_packet.allocate(0 if variant.ipv6 else MAX_IPV4_HEADER_WORDS)
        self.send_packet.set_data(self._send_data)
        self.recv_packet.set_data(self._recv_data)

        self._offset = self.send_packet.icmp_offset
        self._length = self.send_packet.icmp_packet_byte_length

        self._transport = transport if transport is not None else RawSocket()
        self._transport.open(variant.family, variant.protocol)
        try:
            self._apply_timeouts(self.config.timeout)
        except Exception:
            self._transport.close()
            raise

        logger.debug("Opened %s echo session id=%d timeout=%.3fs",
                     variant, identifier, self.config.timeout)

    @classmethod
    def for_destination(cls,
                        host: str,
                        identifier: Optional[int] = None,
                        family: Optional[int] = None,
                        **kwargs) -> Tuple['EchoSession', str]:
        """
        Resolve ``host`` and open a session of the matching variant.

        Returns:
            (session, resolved numeric address)

        Raises:
            AddressResolutionFailure: If the host cannot be resolved
        """
        family, address = resolve_address(host, family)
        session = cls(identifier, variant_for_family(family), **kwargs)
        session._last_destination = (host, address)
        return session, address

    def _apply_timeouts(self, timeout: float) -> None:
        try:
            self._transport.set_send_timeout(timeout)
            self._transport.set_receive_timeout(timeout)
        except OSError as e:
            logger.debug("Socket timeout options unsupported (%s), tracking timeouts with select()", e)
            self._transport.set_use_select_timeout(True)
            self._transport.set_send_timeout(timeout)
            self._transport.set_receive_timeout(timeout)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def sequence(self) -> int:
        """Sequence number the next request will carry."""
        return self._sequence

    @property
    def transport(self):
        return self._transport

    @property
    def source_address(self) -> bytes:
        """Source of the last received frame."""
        return self._source_address

    @property
    def request_data_length(self) -> int:
        """Bytes in the data portion of an echo request."""
        return self.send_packet.icmp_data_byte_length

    @property
    def request_packet_length(self) -> int:
        """Bytes in the whole IP packet carrying an echo request."""
        return self.variant.packet_length(self.send_packet)

    def set_echo_reply_listener(self, listener: Optional[EchoReplyListener]) -> None:
        self._listener = listener

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedResource("Echo session is closed")

    def _destination_address(self, destination: str) -> str:
        destination = str(destination)
        if self._last_destination is not None and self._last_destination[0] == destination:
            return self._last_destination[1]
        _, address = resolve_address(destination, self.variant.family)
        self._last_destination = (destination, address)
        return address

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def send_echo_request(self, destination: str) -> int:
        """
        Build and transmit one echo request.

        Returns:
            The sequence number that was sent

        Raises:
            ClosedResource: If the session is closed
            AddressResolutionFailure: If the destination cannot be resolved
        """
        self._ensure_open()
        address = self._destination_address(destination)

        packet = self.send_packet
        sequence = self._sequence
        self._sequence += 1

        packet.type = self.variant.echo_request
        packet.code = 0
        packet.identifier = self.identifier
        packet.sequence_number = sequence
        packet.timestamp = self._clock()

        source = b''
        target = b''
        if self.variant.needs_source_address:
            source = self._transport.get_source_address_for_destination(address)
            target = address_to_bytes(address, self.variant.family)
        self.variant.checksum(packet, source, target)

        self._transport.write(address, self._send_data, self._offset, self._length)
        logger.debug("Sent echo request to %s id=%d seq=%d", address, self.identifier, sequence)
        return sequence

    def receive(self, timeout: Optional[float] = None) -> int:
        """
        Receive one frame into the receive buffer.

        IPv4 frames include the IP header, whose length is taken from the
        frame itself. IPv6 frames start at the ICMPv6 header.

        Returns:
            Number of bytes received

        Raises:
            EchoTimeout: If nothing arrives within ``timeout`` seconds
            ClosedResource: If the session is or gets closed
        """
        self._ensure_open()
        packet = self.recv_packet
        if self.variant.ipv6:
            nbytes, source = self._transport.read(self._recv_data, packet.icmp_offset,
                                                  packet.icmp_packet_byte_length, timeout)
        else:
            nbytes, source = self._transport.read(self._recv_data, 0,
                                                  len(self._recv_data), timeout)
            header_words = self._recv_data[0] & 0x0F
            if nbytes and 5 <= header_words <= MAX_IPV4_HEADER_WORDS:
                packet.ip_header_words = header_words
        self._source_address = source
        return nbytes

    def _is_echo_reply(self, nbytes: int) -> bool:
        packet = self.recv_packet
        return (nbytes >= packet.data_offset
                and packet.type == self.variant.echo_reply
                and packet.identifier == self.identifier)

    def receive_echo_reply(self, timeout: Optional[float] = None) -> EchoReply:
        """
        Receive frames until an echo reply for this session's identifier.

        Frames of another type or identifier are discarded. A single
        deadline covers the whole loop, so unrelated traffic cannot
        extend the wait.

        Args:
            timeout: Seconds to wait (default: the session timeout)

        Returns:
            The matched reply; the listener, if set, is called with it too

        Raises:
            EchoTimeout: If no matching reply arrives before the deadline
            ClosedResource: If the session is or gets closed
        """
        self._ensure_open()
        if timeout is None:
            timeout = self.config.timeout
        deadline = time.monotonic() + timeout
        packet = self.recv_packet

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise EchoTimeout(
                    f"No echo reply for id={self.identifier} within {timeout:.3f}s")
            nbytes = self.receive(remaining)
            if self._is_echo_reply(nbytes):
                break
            logger.debug("Discarded frame (%d bytes, type=%s, id=%s)", nbytes,
                         packet.type if nbytes > packet.icmp_offset else None,
                         packet.identifier if nbytes >= packet.data_offset else None)

        end = self._clock()
        round_trip = end - packet.timestamp if nbytes >= packet.data_offset + 8 else 0
        reply = EchoReply(packet, packet.data_offset, self._source_address,
                          packet.sequence_number, round_trip)

        if self._listener is not None:
            self._listener(packet, reply.data_offset, reply.source_address)
        return reply

    def ping(self, destination: str) -> int:
        """
        Issue a synchronous ping.

        Returns:
            Round trip time in nanoseconds
        """
        self.send_echo_request(destination)
        return self.receive_echo_reply().round_trip_ns

    def close(self) -> None:
        """Release the raw socket. The session cannot be used afterwards."""
        if self._closed:
            return
        self._closed = True
        self._transport.close()
        logger.debug("Closed echo session id=%d", self.identifier)

    def __enter__(self) -> 'EchoSession':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<EchoSession {self.variant} id={self.identifier} seq={self._sequence} {state}>"
