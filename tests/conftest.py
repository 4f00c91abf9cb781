"""Shared fixtures for loggergateway tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from loggergateway.core.checksum import compute_checksum
from loggergateway.device.base import DataFile, NoSuchFileError
from loggergateway.sync.store import FileStateStore

BASE_ID = "0005E1A3"


class FakeDevice:
    """In-memory device for testing."""

    def __init__(self) -> None:
        self.files: dict[str, DataFile | None] = {}
        self.list_fails = False
        self.erase_fails = False
        self.fetched: list[str] = []
        self.erased: list[str] = []

    def list_available_filenames(self) -> set[str] | None:
        if self.list_fails:
            return None
        return set(self.files)

    def fetch_file(self, filename: str) -> DataFile | None:
        self.fetched.append(filename)
        if filename not in self.files:
            raise NoSuchFileError(filename)
        return self.files[filename]

    def erase_file(self, filename: str) -> bool:
        if self.erase_fails or filename not in self.files:
            return False
        self.erased.append(filename)
        del self.files[filename]
        return True


def _make_data_file(
    filename: str = f"{BASE_ID}.BT",
    payload: bytes = b"logged sensor data",
    corrupt: bool = False,
) -> DataFile:
    checksum = compute_checksum(payload)
    if corrupt:
        checksum ^= 0xFFFFFFFF
    return DataFile(filename=filename, payload=payload, checksum=checksum)


@pytest.fixture
def make_data_file() -> Callable[..., DataFile]:
    """Factory for DataFiles with a correct (or deliberately wrong) checksum."""
    return _make_data_file


@pytest.fixture
def device() -> FakeDevice:
    """Create an empty in-memory device."""
    return FakeDevice()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Create a data file directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir: Path) -> FileStateStore:
    """Create a FileStateStore over an empty directory."""
    return FileStateStore(data_dir)
