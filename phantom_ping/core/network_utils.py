"""
Network Utilities Module
========================

Address resolution and conversion helpers for the echo engine.
"""

import logging
import os
import socket
from typing import Optional, Tuple

from .errors import AddressResolutionFailure

logger = logging.getLogger(__name__)

_ADDRESS_LENGTHS = {4: socket.AF_INET, 16: socket.AF_INET6}


def default_identifier() -> int:
    """Echo identifier derived from the process ID, as ping(8) does."""
    return os.getpid() & 0xFFFF


def resolve_address(host: str, family: Optional[int] = None) -> Tuple[int, str]:
    """
    Resolve a hostname or literal address.

    Args:
        host: Hostname, IPv4 or IPv6 literal
        family: Restrict to AF_INET or AF_INET6 (None picks the first result)

    Returns:
        (address family, numeric address string)

    Raises:
        AddressResolutionFailure: If the host cannot be resolved
    """
    logger.debug("Resolving %s (family=%s)", host, family)
    try:
        infos = socket.getaddrinfo(host, None, family or socket.AF_UNSPEC,
                                   socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise AddressResolutionFailure(f"Cannot resolve {host}: {e}") from e

    for info_family, _, _, _, sockaddr in infos:
        if info_family in (socket.AF_INET, socket.AF_INET6):
            logger.debug("Resolved %s to %s", host, sockaddr[0])
            return info_family, sockaddr[0]

    raise AddressResolutionFailure(f"No IPv4/IPv6 address for {host}")


def address_to_bytes(address: str, family: int) -> bytes:
    """
    Pack a numeric address string.

    Raises:
        AddressResolutionFailure: If the address is not valid for the family
    """
    try:
        return socket.inet_pton(family, address.split('%', 1)[0])
    except (OSError, ValueError) as e:
        raise AddressResolutionFailure(f"Invalid address {address!r}: {e}") from e


def bytes_to_address(raw: bytes) -> str:
    """Convert a 4 or 16 byte packed address to its text form."""
    family = _ADDRESS_LENGTHS.get(len(raw))
    if family is None:
        raise ValueError(f"Packed address must be 4 or 16 bytes, got {len(raw)}")
    return socket.inet_ntop(family, raw)


def sockaddr_to_bytes(sockaddr, family: int) -> bytes:
    """Packed address from a ``recvfrom`` socket address tuple."""
    return address_to_bytes(sockaddr[0], family)


def get_source_address(destination: str, family: int) -> bytes:
    """
    Find the local address the kernel uses to reach ``destination``.

    A connected UDP socket selects a route without sending anything.

    Returns:
        Packed local address (4 or 16 bytes)

    Raises:
        AddressResolutionFailure: If no route to the destination exists
    """
    try:
        with socket.socket(family, socket.SOCK_DGRAM) as s:
            s.connect((destination, 9))
            local_ip = s.getsockname()[0]
    except OSError as e:
        raise AddressResolutionFailure(
            f"No source address for {destination}: {e}") from e
    logger.debug("Source address for %s is %s", destination, local_ip)
    return address_to_bytes(local_ip, family)


__all__ = [
    'default_identifier',
    'resolve_address',
    'address_to_bytes',
    'bytes_to_address',
    'sockaddr_to_bytes',
    'get_source_address',
]
