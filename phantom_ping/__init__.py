"""
Phantom Ping v1.0.0 - ICMP/ICMPv6 Echo Engine
=============================================

Builds echo requests, sends them over raw sockets, correlates the echo
replies and measures round trip time, for IPv4 and IPv6.

Usage:
    from phantom_ping import EchoSession, IPV4

    with EchoSession(identifier=0x1234, variant=IPV4) as session:
        rtt_ns = session.ping("127.0.0.1")

Author: Phantom Ping Team
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Phantom Ping Team"

from phantom_ping.core.echo_session import EchoReply, EchoSession, SessionConfig
from phantom_ping.core.errors import (
    AddressResolutionFailure,
    ClosedResource,
    EchoTimeout,
    PingError,
    TransportUnavailable,
)
from phantom_ping.core.variants import IPV4, IPV6

__all__ = [
    'EchoSession',
    'EchoReply',
    'SessionConfig',
    'IPV4',
    'IPV6',
    'PingError',
    'TransportUnavailable',
    'ClosedResource',
    'EchoTimeout',
    'AddressResolutionFailure',
    '__version__',
]
