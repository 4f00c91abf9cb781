"""Device backed by a directory of device-format files.

A DirectoryDevice serves files laid out exactly as the device stores them:
"XXXXXXXX.BT" names whose content is the payload followed by the 4-byte
CRC trailer. This covers memory cards mounted on the gateway host and
folders filled by an external serial bridge.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from loggergateway.core.checksum import split_trailer
from loggergateway.device.base import DataFile, NoSuchFileError

logger = logging.getLogger(__name__)

DEVICE_FILENAME_PATTERN = re.compile(r"^[0-9A-F]{8}\.BT$", re.IGNORECASE)


class DirectoryDevice:
    """Device implementation reading from a local directory."""

    def __init__(self, path: Path) -> None:
        """Initialize the device.

        Args:
            path: Directory holding the device files.
        """
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Get the directory backing this device."""
        return self._path

    def _find(self, filename: str) -> Path | None:
        wanted = filename.upper()
        try:
            for entry in self._path.iterdir():
                if entry.name.upper() == wanted and entry.is_file():
                    return entry
        except OSError as e:
            logger.error(f"Failed to read device directory {self._path}: {e}")
        return None

    def list_available_filenames(self) -> set[str] | None:
        """List device files, upper-cased as the device firmware reports them."""
        try:
            return {
                entry.name.upper()
                for entry in self._path.iterdir()
                if entry.is_file() and DEVICE_FILENAME_PATTERN.match(entry.name)
            }
        except OSError as e:
            logger.warning(f"Failed to list device directory {self._path}: {e}")
            return None

    def fetch_file(self, filename: str) -> DataFile | None:
        """Read a device file and split off its checksum trailer."""
        path = self._find(filename)
        if path is None:
            raise NoSuchFileError(f"No such file on device: {filename}")

        try:
            raw = path.read_bytes()
        except OSError as e:
            logger.warning(f"Failed to read device file {path}: {e}")
            return None

        if not raw:
            return DataFile.empty()

        try:
            payload, checksum = split_trailer(raw)
        except ValueError as e:
            logger.warning(f"Truncated device file {path.name}: {e}")
            return None

        return DataFile(filename=filename.upper(), payload=payload, checksum=checksum)

    def erase_file(self, filename: str) -> bool:
        """Delete a device file."""
        path = self._find(filename)
        if path is None:
            return False
        try:
            path.unlink()
            return True
        except OSError as e:
            logger.error(f"Failed to erase device file {path}: {e}")
            return False
