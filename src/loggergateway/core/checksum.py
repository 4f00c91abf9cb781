"""CRC-32 verification of data files downloaded from the device.

The device appends a 32-bit CRC, big-endian, after the payload of every
file it sends. The CRC covers the payload only.
"""

from __future__ import annotations

import struct
import zlib

TRAILER_SIZE = 4
_TRAILER = struct.Struct(">I")


def compute_checksum(payload: bytes) -> int:
    """Compute the unsigned 32-bit CRC of a payload."""
    return zlib.crc32(payload) & 0xFFFFFFFF


def verify_checksum(payload: bytes, expected: int) -> bool:
    """Check a payload against the CRC sent by the device.

    Returns:
        True if the checksum matches. A mismatch is a normal outcome,
        not an error.
    """
    return compute_checksum(payload) == (expected & 0xFFFFFFFF)


def split_trailer(raw: bytes) -> tuple[bytes, int]:
    """Split device output into payload and CRC trailer.

    Args:
        raw: Payload followed by the 4-byte trailer.

    Returns:
        Tuple of (payload, checksum).

    Raises:
        ValueError: If raw is shorter than the trailer.
    """
    if len(raw) < TRAILER_SIZE:
        raise ValueError(
            f"Data too short for checksum trailer ({len(raw)} < {TRAILER_SIZE} bytes)"
        )
    payload = raw[:-TRAILER_SIZE]
    (checksum,) = _TRAILER.unpack(raw[-TRAILER_SIZE:])
    return payload, checksum


def append_trailer(payload: bytes) -> bytes:
    """Append the CRC trailer to a payload, as the device does."""
    return payload + _TRAILER.pack(compute_checksum(payload))
