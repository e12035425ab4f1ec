"""
Checksum Module - RFC 1071 Internet checksum for ICMP and ICMPv6 echo packets.

Provides ones-complement checksum computation over byte ranges of a
mutable packet buffer:
- ICMP messages (RFC 792)
- ICMPv6 messages with the IPv6 pseudo-header folded in (RFC 2460 / RFC 4443)

Some IPv6 stacks do not compute the ICMPv6 checksum for raw sockets and
ignore IPV6_CHECKSUM, so the pseudo-header variant is computed in user space.

All functions are pure apart from the optional write-back into the buffer.
"""

import struct
from typing import Union

Buffer = Union[bytes, bytearray, memoryview]

# Next Header value for ICMPv6 in the IPv6 pseudo-header
ICMPV6_NEXT_HEADER = 58


class ChecksumError(ValueError):
    """Raised when a checksum is requested over an invalid buffer range."""
    pass


class InternetChecksum:
    """
    RFC 1071 compliant ones-complement checksum calculator.

    1. Sum all 16-bit big-endian words (trailing odd byte padded with zero)
    2. Fold the carries back into the low 16 bits
    3. Return the ones-complement

    The checksum field inside the covered region always reads as zero during
    the summation, whatever the buffer currently holds there.

    Example:
        >>> buf = bytearray(b'\\x08\\x00\\x00\\x00\\x00\\x01\\x00\\x01')
        >>> InternetChecksum.compute(buf, 0, 2, len(buf))
        63485
        >>> InternetChecksum.in_cksum(buf)
        0
    """

    @staticmethod
    def _fold_32_to_16(total: int) -> int:
        """Fold carries above bit 15 back into the low 16 bits."""
        while total >> 16:
            total = (total & 0xFFFF) + (total >> 16)
        return total

    @staticmethod
    def _ones_complement_16(value: int) -> int:
        return (~value) & 0xFFFF

    @staticmethod
    def _sum_words(data: Buffer, start: int, length: int) -> int:
        """Sum big-endian 16-bit words of data[start:start + length]."""
        total = 0
        even_end = start + length - (length & 1)
        for i in range(start, even_end, 2):
            total += (data[i] << 8) | data[i + 1]
            # 32-bit accumulator
            if total > 0xFFFFFFFF:
                total = (total & 0xFFFF) + (total >> 16)
        if length & 1:
            total += data[even_end] << 8
        return total

    @classmethod
    def in_cksum(cls, data: Buffer, start: int = 0) -> int:
        """
        Compute the Internet checksum of a whole buffer.

        Args:
            data: Bytes to checksum
            start: Initial value added to the sum (e.g. a pseudo-header seed)

        Returns:
            16-bit ones-complement checksum. Re-summing a region whose
            checksum field has been filled in yields 0.
        """
        total = cls._sum_words(data, 0, len(data)) + start
        return cls._ones_complement_16(cls._fold_32_to_16(total))

    @classmethod
    def compute(cls,
                buffer: Buffer,
                start_offset: int,
                checksum_offset: int,
                length: int,
                seed: int = 0,
                write_back: bool = True) -> int:
        """
        Compute the checksum of ``buffer[start_offset:start_offset + length]``.

        Args:
            buffer: Packet buffer (must be writable when ``write_back`` is set)
            start_offset: First byte of the covered region
            checksum_offset: Absolute offset of the 2-byte checksum field
            length: Number of bytes covered; zero yields 0xFFFF
            seed: Pseudo-header sum added before folding
            write_back: Store the result at ``checksum_offset`` in network order

        Returns:
            16-bit checksum value

        Raises:
            ChecksumError: If the range is negative or outside the buffer
        """
        if length < 0:
            raise ChecksumError(f"Checksum length must be >= 0, got {length}")
        if start_offset < 0 or start_offset + length > len(buffer):
            raise ChecksumError(
                f"Checksum range [{start_offset}, {start_offset + length}) "
                f"outside buffer of {len(buffer)} bytes"
            )

        region = bytes(buffer[start_offset:start_offset + length])
        field = checksum_offset - start_offset
        if 0 <= field < length:
            width = min(2, length - field)
            region = region[:field] + bytes(width) + region[field + width:]

        total = cls._sum_words(region, 0, length) + seed
        result = cls._ones_complement_16(cls._fold_32_to_16(total))

        if write_back:
            struct.pack_into('!H', buffer, checksum_offset, result)

        return result

    @classmethod
    def ipv6_pseudo_header_seed(cls,
                                src_addr: Buffer,
                                dst_addr: Buffer,
                                upper_layer_length: int,
                                next_header: int = ICMPV6_NEXT_HEADER) -> int:
        """
        Sum the IPv6 pseudo-header words for use as a checksum seed.

        IPv6 pseudo-header (RFC 2460 section 8.1, 40 bytes, never sent):
            - Source Address: 16 bytes
            - Destination Address: 16 bytes
            - Upper-Layer Packet Length: 4 bytes
            - Zero: 3 bytes
            - Next Header: 1 byte (ICMPv6 = 58)

        Args:
            src_addr: Source IPv6 address (16 bytes)
            dst_addr: Destination IPv6 address (16 bytes)
            upper_layer_length: Length of the ICMPv6 message
            next_header: Upper-layer protocol number

        Returns:
            Pseudo-header sum folded to 16 bits

        Raises:
            ChecksumError: If addresses are not 16 bytes each
        """
        if len(src_addr) != 16 or len(dst_addr) != 16:
            raise ChecksumError("IPv6 addresses must be 16 bytes each")

        total = cls._sum_words(src_addr, 0, 16) + cls._sum_words(dst_addr, 0, 16)
        total += (upper_layer_length >> 16) & 0xFFFF
        total += upper_layer_length & 0xFFFF
        total += next_header
        return cls._fold_32_to_16(total)

    @classmethod
    def icmp_checksum(cls,
                      buffer: Buffer,
                      start_offset: int,
                      length: int,
                      write_back: bool = True) -> int:
        """
        Calculate an ICMP checksum per RFC 792.

        The checksum field sits 2 bytes into the ICMP message.
        """
        return cls.compute(buffer, start_offset, start_offset + 2, length,
                           write_back=write_back)

    @classmethod
    def icmpv6_checksum(cls,
                        buffer: Buffer,
                        start_offset: int,
                        length: int,
                        src_addr: Buffer,
                        dst_addr: Buffer,
                        write_back: bool = True) -> int:
        """
        Calculate an ICMPv6 checksum per RFC 4443 section 2.3.

        The pseudo-header totals are passed to the generic routine as seed.
        """
        seed = cls.ipv6_pseudo_header_seed(src_addr, dst_addr, length)
        return cls.compute(buffer, start_offset, start_offset + 2, length,
                           seed=seed, write_back=write_back)


def compute_checksum(buffer: Buffer,
                     start_offset: int,
                     checksum_offset: int,
                     length: int,
                     seed: int = 0,
                     write_back: bool = True) -> int:
    """Module-level shortcut for :meth:`InternetChecksum.compute`."""
    return InternetChecksum.compute(buffer, start_offset, checksum_offset,
                                    length, seed, write_back)


def icmp_checksum(message: Buffer) -> int:
    """
    Calculate the checksum of a standalone ICMP message.

    Args:
        message: ICMP message bytes (checksum field ignored)

    Returns:
        16-bit checksum value
    """
    return InternetChecksum.icmp_checksum(message, 0, len(message), write_back=False)


def icmpv6_checksum(src_addr: bytes, dst_addr: bytes, message: Buffer) -> int:
    """
    Calculate the checksum of a standalone ICMPv6 message.

    Args:
        src_addr: Source IPv6 address (16 bytes)
        dst_addr: Destination IPv6 address (16 bytes)
        message: ICMPv6 message bytes (checksum field ignored)

    Returns:
        16-bit checksum value
    """
    return InternetChecksum.icmpv6_checksum(message, 0, len(message),
                                            src_addr, dst_addr, write_back=False)
