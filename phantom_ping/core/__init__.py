"""
Core module initialization for Phantom Ping.
"""

from .checksum import (
    InternetChecksum,
    ChecksumError,
    compute_checksum,
    icmp_checksum,
    icmpv6_checksum,
)
from .echo_packet import EchoPacket
from .echo_session import EchoReply, EchoSession, SessionConfig
from .errors import (
    AddressResolutionFailure,
    ClosedResource,
    EchoTimeout,
    PingError,
    TransportUnavailable,
)
from .raw_socket import RawSocket
from .variants import IPV4, IPV6, EchoVariant, variant_for_family

__all__ = [
    'InternetChecksum',
    'ChecksumError',
    'compute_checksum',
    'icmp_checksum',
    'icmpv6_checksum',
    'EchoPacket',
    'EchoReply',
    'EchoSession',
    'SessionConfig',
    'RawSocket',
    'EchoVariant',
    'IPV4',
    'IPV6',
    'variant_for_family',
    'PingError',
    'TransportUnavailable',
    'ClosedResource',
    'EchoTimeout',
    'AddressResolutionFailure',
]
