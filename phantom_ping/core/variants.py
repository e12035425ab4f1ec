"""
Address-family variants of the echo engine.

Exactly two variants exist, IPv4 and IPv6. Each one carries its constants
and its checksum routine as data; a session picks one when it opens.
"""

import socket
from dataclasses import dataclass
from typing import Callable, Dict

from .checksum import InternetChecksum
from .echo_packet import DEFAULT_IPV4_HEADER_WORDS, EchoPacket

IPV6_HEADER_LENGTH = 40

# (packet, source address, destination address) -> checksum
ChecksumMethod = Callable[[EchoPacket, bytes, bytes], int]


def _icmpv4_checksum(packet: EchoPacket, source: bytes, destination: bytes) -> int:
    """ICMP checksum over the ICMP region only; addresses are not used."""
    return InternetChecksum.icmp_checksum(packet.data, packet.icmp_offset,
                                          packet.icmp_packet_byte_length)


def _icmpv6_checksum(packet: EchoPacket, source: bytes, destination: bytes) -> int:
    """ICMPv6 checksum seeded with the IPv6 pseudo-header."""
    return InternetChecksum.icmpv6_checksum(packet.data, packet.icmp_offset,
                                            packet.icmp_packet_byte_length,
                                            source, destination)


@dataclass(frozen=True)
class EchoVariant:
    """Per-address-family constants and checksum method."""
    name: str
    family: int
    protocol: int
    echo_request: int
    echo_reply: int
    address_length: int
    ip_header_words: int
    # added to the buffer length when reporting the total packet size
    reported_header_length: int
    needs_source_address: bool
    checksum: ChecksumMethod

    @property
    def ipv6(self) -> bool:
        return self.family == socket.AF_INET6

    def new_packet(self, data_length: int) -> EchoPacket:
        return EchoPacket(ip_header_words=self.ip_header_words,
                          data_length=data_length,
                          ipv6=self.ipv6)

    def packet_length(self, packet: EchoPacket) -> int:
        """Total IP packet size as reported to the caller."""
        return packet.ip_packet_length + self.reported_header_length

    def __str__(self) -> str:
        return self.name


IPV4 = EchoVariant(
    name="IPv4",
    family=socket.AF_INET,
    protocol=socket.IPPROTO_ICMP,
    echo_request=8,
    echo_reply=0,
    address_length=4,
    ip_header_words=DEFAULT_IPV4_HEADER_WORDS,
    reported_header_length=0,
    needs_source_address=False,
    checksum=_icmpv4_checksum,
)

IPV6 = EchoVariant(
    name="IPv6",
    family=socket.AF_INET6,
    protocol=getattr(socket, 'IPPROTO_ICMPV6', 58),
    echo_request=128,
    echo_reply=129,
    address_length=16,
    ip_header_words=0,
    reported_header_length=IPV6_HEADER_LENGTH,
    needs_source_address=True,
    checksum=_icmpv6_checksum,
)

VARIANTS: Dict[int, EchoVariant] = {
    socket.AF_INET: IPV4,
    socket.AF_INET6: IPV6,
}


def variant_for_family(family: int) -> EchoVariant:
    """
    Look up the variant for an address family.

    Raises:
        ValueError: If the family is neither AF_INET nor AF_INET6
    """
    try:
        return VARIANTS[family]
    except KeyError:
        raise ValueError(f"Unsupported address family: {family}") from None
