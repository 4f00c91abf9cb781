"""Device capability used by the synchronization engine.

This module provides:
- DataFile: A file downloaded from the device (payload plus CRC trailer value)
- Device: Protocol implemented by device links (serial, directory, ...)
- DeviceError / NoSuchFileError: Device failures
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from loggergateway.core.checksum import verify_checksum
from loggergateway.core.types import compute_base_id, timestamp_for_base_id


class DeviceError(Exception):
    """Base exception for device errors."""


class NoSuchFileError(DeviceError):
    """The device does not have the requested file."""


@dataclass(frozen=True)
class DataFile:
    """A data file as received from the device.

    Attributes:
        filename: Name reported by the device, e.g. "0005E1A3.BT".
        payload: Raw logged data, without framing or trailer.
        checksum: CRC-32 sent by the device after the payload.
    """

    filename: str
    payload: bytes
    checksum: int

    @classmethod
    def empty(cls) -> DataFile:
        """Create the marker the device returns when no data is available yet."""
        return cls(filename="", payload=b"", checksum=0)

    @property
    def is_empty(self) -> bool:
        """Check if this is the "no data yet" marker."""
        return not self.filename and not self.payload

    @property
    def base_id(self) -> str:
        """Get the base id (device timestamp in hex)."""
        return compute_base_id(self.filename)

    @property
    def timestamp(self) -> datetime:
        """Get the device timestamp encoded in the filename."""
        return timestamp_for_base_id(self.base_id)

    @property
    def length(self) -> int:
        """Get the payload length in bytes."""
        return len(self.payload)

    @property
    def is_checksum_correct(self) -> bool:
        """Check the payload against the device checksum."""
        return verify_checksum(self.payload, self.checksum)

    def __repr__(self) -> str:
        if self.is_empty:
            return "DataFile(empty)"
        return f"DataFile(filename={self.filename!r}, length={self.length})"


class Device(Protocol):
    """Capability the engine needs from a logging device.

    All calls block for at most the link's own timeout and are only
    made from the engine's device thread.
    """

    def list_available_filenames(self) -> set[str] | None:
        """List the data files available on the device.

        Returns:
            Set of filenames, or None if the request failed.
        """
        ...

    def fetch_file(self, filename: str) -> DataFile | None:
        """Download a file from the device.

        Returns:
            The file, DataFile.empty() if no data is available yet,
            or None if the transfer failed.

        Raises:
            NoSuchFileError: If the device no longer has the file.
        """
        ...

    def erase_file(self, filename: str) -> bool:
        """Erase a file from the device.

        Returns:
            True if the device confirmed the erase.
        """
        ...
