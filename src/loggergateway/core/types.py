"""Shared types for loggergateway.

This module defines the data file status encoding and the device-side
actions derived from it.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum, auto
from pathlib import Path

BASE_ID_PATTERN = re.compile(r"^[0-9A-F]{8}$")


class FileStatus(Enum):
    """Lifecycle status of a data file, encoded as its filename suffix.

    The suffix is the only record of a file's status. Matching is
    case-insensitive since files copied by hand from a memory card
    may have lower-case names.
    """

    WRITING = ".WRITING"
    DOWNLOADED = ".BT"
    UPLOADING = ".UPLOADING"
    UPLOADED = ".BTU"
    CORRUPT_DATA = ".BTX"
    INCORRECT_CHECKSUM = ".BTC"

    @property
    def suffix(self) -> str:
        """Get the filename suffix for this status."""
        return self.value

    @property
    def is_terminal(self) -> bool:
        """Check if no further local transitions happen from this status."""
        return self in (FileStatus.UPLOADED, FileStatus.CORRUPT_DATA)

    def has_status(self, path: Path | str) -> bool:
        """Check whether the given file name carries this status."""
        return Path(path).name.upper().endswith(self.suffix)

    @classmethod
    def from_filename(cls, filename: str | None) -> FileStatus | None:
        """Decode the status of a filename.

        Args:
            filename: File name (or path) to decode.

        Returns:
            The matching status, or None if the suffix is unknown.
        """
        if not filename:
            return None
        name = Path(filename).name.upper()
        for status in cls:
            if name.endswith(status.suffix):
                return status
        return None


class DeviceAction(Enum):
    """Action to take for a file the device reports as available."""

    NO_ACTION = auto()
    DOWNLOAD_FROM_DEVICE = auto()
    DELETE_FROM_DEVICE = auto()


def compute_base_id(filename: str) -> str:
    """Get the base id of a filename (everything before the first dot).

    Args:
        filename: File name such as "0005E1A3.BT".

    Returns:
        Upper-cased base id, e.g. "0005E1A3".
    """
    return Path(filename).name.split(".", 1)[0].upper()


def is_valid_base_id(base_id: str) -> bool:
    """Check that a base id is exactly 8 hex digits."""
    return bool(BASE_ID_PATTERN.match(base_id.upper()))


def timestamp_for_base_id(base_id: str) -> datetime:
    """Decode the device timestamp encoded in a base id.

    Raises:
        ValueError: If the base id is not 8 hex digits.
    """
    if not is_valid_base_id(base_id):
        raise ValueError(f"Invalid base id: {base_id!r}")
    return datetime.fromtimestamp(int(base_id, 16), tz=UTC)
