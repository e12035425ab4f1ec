"""
Echo Packet Module - byte-buffer view of ICMP / ICMPv6 Echo packets.

Layout of the bound buffer:

    +----------------------+  0
    | IP header            |  ip_header_words * 4 bytes (0 for IPv6, the
    |                      |  kernel supplies and strips the IPv6 header)
    +----------------------+  ip_header_byte_length
    | type (1) | code (1)  |
    | checksum (2)         |
    | identifier (2)       |
    | sequence number (2)  |
    +----------------------+  data_offset
    | timestamp (8)        |
    | padding              |  data_length bytes in total
    +----------------------+

All multi-byte fields are big-endian.
"""

import struct
from typing import Optional

# Offsets relative to the start of the ICMP message
OFFSET_TYPE = 0
OFFSET_CODE = 1
OFFSET_CHECKSUM = 2
OFFSET_IDENTIFIER = 4
OFFSET_SEQUENCE = 6

# Offset of the TTL byte inside an IPv4 header
OFFSET_IPV4_TTL = 8

ICMP_HEADER_LENGTH = 8
TIMESTAMP_LENGTH = 8
DEFAULT_DATA_LENGTH = 56
DEFAULT_IPV4_HEADER_WORDS = 5
MAX_IPV4_HEADER_WORDS = 15

_TIMESTAMP = struct.Struct('!Q')


class EchoPacket:
    """
    Typed accessors over an Echo Request/Reply held in a mutable buffer.

    The packet does not own its storage: ``allocate()`` sizes a buffer from
    the header and payload parameters and ``set_data()`` binds one. Setters
    write exactly the bytes of their field.

    Example:
        >>> packet = EchoPacket(ip_header_words=5, data_length=56)
        >>> packet.set_data(packet.allocate())
        >>> packet.type = 8
        >>> packet.identifier = 0xBEEF
        >>> packet.ip_packet_length
        84
    """

    def __init__(self,
                 ip_header_words: int = DEFAULT_IPV4_HEADER_WORDS,
                 data_length: int = DEFAULT_DATA_LENGTH,
                 ipv6: bool = False):
        """
        Args:
            ip_header_words: IPv4 header length in 32-bit words (ignored for IPv6)
            data_length: Bytes following the 8-byte ICMP header
            ipv6: True for an ICMPv6 packet (no IP header in the buffer)
        """
        if data_length < TIMESTAMP_LENGTH:
            raise ValueError(
                f"Data length must hold the {TIMESTAMP_LENGTH}-byte timestamp, got {data_length}"
            )
        self.ipv6 = ipv6
        self._data: Optional[bytearray] = None
        self._data_length = data_length
        self._ip_header_words = 0
        self.ip_header_words = 0 if ipv6 else ip_header_words

    def allocate(self, ip_header_words: Optional[int] = None) -> bytearray:
        """Return a zeroed buffer large enough for this packet."""
        words = self._ip_header_words if ip_header_words is None else ip_header_words
        return bytearray(words * 4 + self.icmp_packet_byte_length)

    def set_data(self, data: bytearray) -> None:
        """Bind the backing buffer."""
        self._data = data

    @property
    def data(self) -> bytearray:
        if self._data is None:
            raise ValueError("No buffer bound to packet, call set_data() first")
        return self._data

    # ------------------------------------------------------------------
    # Lengths and offsets
    # ------------------------------------------------------------------

    @property
    def ip_header_words(self) -> int:
        return self._ip_header_words

    @ip_header_words.setter
    def ip_header_words(self, words: int) -> None:
        if self.ipv6:
            if words:
                raise ValueError("ICMPv6 packets carry no IP header in the buffer")
            return
        if not DEFAULT_IPV4_HEADER_WORDS <= words <= MAX_IPV4_HEADER_WORDS:
            raise ValueError(f"IPv4 header length must be 5..15 words, got {words}")
        self._ip_header_words = words

    @property
    def ip_header_byte_length(self) -> int:
        return self._ip_header_words * 4

    @property
    def icmp_header_byte_length(self) -> int:
        return ICMP_HEADER_LENGTH

    @property
    def icmp_data_byte_length(self) -> int:
        return self._data_length

    @property
    def icmp_packet_byte_length(self) -> int:
        return ICMP_HEADER_LENGTH + self._data_length

    @property
    def ip_packet_length(self) -> int:
        """IPv4: header + ICMP message. IPv6: ICMPv6 message only."""
        return self.ip_header_byte_length + self.icmp_packet_byte_length

    @property
    def icmp_offset(self) -> int:
        return self.ip_header_byte_length

    @property
    def data_offset(self) -> int:
        return self.ip_header_byte_length + ICMP_HEADER_LENGTH

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    def _get_byte(self, offset: int) -> int:
        return self.data[self.icmp_offset + offset]

    def _set_byte(self, offset: int, value: int) -> None:
        self.data[self.icmp_offset + offset] = value & 0xFF

    def _get_short(self, offset: int) -> int:
        return struct.unpack_from('!H', self.data, self.icmp_offset + offset)[0]

    def _set_short(self, offset: int, value: int) -> None:
        struct.pack_into('!H', self.data, self.icmp_offset + offset, value & 0xFFFF)

    @property
    def type(self) -> int:
        return self._get_byte(OFFSET_TYPE)

    @type.setter
    def type(self, value: int) -> None:
        self._set_byte(OFFSET_TYPE, value)

    @property
    def code(self) -> int:
        return self._get_byte(OFFSET_CODE)

    @code.setter
    def code(self, value: int) -> None:
        self._set_byte(OFFSET_CODE, value)

    @property
    def checksum(self) -> int:
        return self._get_short(OFFSET_CHECKSUM)

    @checksum.setter
    def checksum(self, value: int) -> None:
        self._set_short(OFFSET_CHECKSUM, value)

    @property
    def identifier(self) -> int:
        return self._get_short(OFFSET_IDENTIFIER)

    @identifier.setter
    def identifier(self, value: int) -> None:
        self._set_short(OFFSET_IDENTIFIER, value)

    @property
    def sequence_number(self) -> int:
        return self._get_short(OFFSET_SEQUENCE)

    @sequence_number.setter
    def sequence_number(self, value: int) -> None:
        self._set_short(OFFSET_SEQUENCE, value)

    @property
    def ttl(self) -> Optional[int]:
        """IPv4 time-to-live of a received frame; None for ICMPv6."""
        if self.ipv6:
            return None
        return self.data[OFFSET_IPV4_TTL]

    @property
    def timestamp(self) -> int:
        """Nanosecond timestamp embedded at the start of the payload."""
        return _TIMESTAMP.unpack_from(self.data, self.data_offset)[0]

    @timestamp.setter
    def timestamp(self, value: int) -> None:
        _TIMESTAMP.pack_into(self.data, self.data_offset, value & 0xFFFFFFFFFFFFFFFF)

    @property
    def payload(self) -> memoryview:
        start = self.data_offset
        return memoryview(self.data)[start:start + self._data_length]

    def icmp_bytes(self) -> bytes:
        """Copy of the ICMP region (header + payload)."""
        start = self.icmp_offset
        return bytes(self.data[start:start + self.icmp_packet_byte_length])

    # ------------------------------------------------------------------
    # Dissection
    # ------------------------------------------------------------------

    def to_scapy(self):
        """
        Decode the ICMP region with scapy.

        Returns:
            ``ICMP`` layer for IPv4, ``ICMPv6EchoRequest`` /
            ``ICMPv6EchoReply`` / ``ICMPv6Unknown`` for IPv6
        """
        raw = self.icmp_bytes()
        if not self.ipv6:
            from scapy.layers.inet import ICMP
            return ICMP(raw)

        from scapy.layers.inet6 import ICMPv6EchoReply, ICMPv6EchoRequest, ICMPv6Unknown
        layers = {128: ICMPv6EchoRequest, 129: ICMPv6EchoReply}
        return layers.get(self.type, ICMPv6Unknown)(raw)

    def __repr__(self) -> str:
        if self._data is None:
            return f"<EchoPacket unbound ipv6={self.ipv6}>"
        return (f"<EchoPacket type={self.type} code={self.code} "
                f"id={self.identifier} seq={self.sequence_number} "
                f"checksum=0x{self.checksum:04x}>")
