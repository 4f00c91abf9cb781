"""Tests for CRC-32 checksum verification."""

from __future__ import annotations

import zlib

import pytest

from loggergateway.core.checksum import (
    TRAILER_SIZE,
    append_trailer,
    compute_checksum,
    split_trailer,
    verify_checksum,
)


class TestComputeChecksum:
    """Tests for compute_checksum."""

    def test_matches_crc32(self) -> None:
        """Should compute the standard CRC-32."""
        assert compute_checksum(b"123456789") == 0xCBF43926

    def test_unsigned(self) -> None:
        """Should always be a non-negative 32-bit value."""
        value = compute_checksum(b"\xff" * 64)
        assert 0 <= value <= 0xFFFFFFFF
        assert value == zlib.crc32(b"\xff" * 64) & 0xFFFFFFFF

    def test_empty_payload(self) -> None:
        """CRC of no bytes is zero."""
        assert compute_checksum(b"") == 0


class TestVerifyChecksum:
    """Tests for verify_checksum."""

    @pytest.mark.parametrize("payload", [b"", b"x", b"data" * 1000, bytes(range(256))])
    def test_accepts_own_checksum(self, payload: bytes) -> None:
        """A payload always verifies against its own checksum."""
        assert verify_checksum(payload, compute_checksum(payload))

    def test_single_bit_flip_fails(self) -> None:
        """Flipping any single bit makes verification fail."""
        payload = b"binary records from the logging device"
        expected = compute_checksum(payload)
        for byte_index in range(len(payload)):
            for bit in range(8):
                flipped = bytearray(payload)
                flipped[byte_index] ^= 1 << bit
                assert not verify_checksum(bytes(flipped), expected)

    def test_mismatch_returns_false(self) -> None:
        """Mismatch is a result, not an exception."""
        assert verify_checksum(b"abc", 12345) is False


class TestTrailer:
    """Tests for splitting and appending the device trailer."""

    def test_split_big_endian(self) -> None:
        """Trailer is the last four bytes, big-endian."""
        payload, checksum = split_trailer(b"abc" + b"\x01\x02\x03\x04")
        assert payload == b"abc"
        assert checksum == 0x01020304

    def test_append_then_split(self) -> None:
        """A trailer written by append_trailer verifies after splitting."""
        payload, checksum = split_trailer(append_trailer(b"payload"))
        assert payload == b"payload"
        assert verify_checksum(payload, checksum)

    def test_trailer_only(self) -> None:
        """Four bytes are an empty payload plus trailer."""
        payload, checksum = split_trailer(b"\x00" * TRAILER_SIZE)
        assert payload == b""
        assert checksum == 0

    def test_too_short(self) -> None:
        """Should reject data shorter than the trailer."""
        with pytest.raises(ValueError):
            split_trailer(b"abc")
