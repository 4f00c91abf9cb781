"""Tests for the upload coordinator."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from loggergateway.api import UploadResponse
from loggergateway.core.types import FileStatus
from loggergateway.sync.stats import Statistics, StatsCategory
from loggergateway.sync.store import FileStateStore
from loggergateway.sync.upload import UploadCoordinator, UploadOutcome, classify_response

BASE_ID = "0005E1A3"

SUCCESS = UploadResponse(successful_binrecs=12, failed_binrecs=0)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def make_coordinator(
    store: FileStateStore,
    uploader: MagicMock,
    clock: FakeClock | None = None,
) -> UploadCoordinator:
    """Create a coordinator with fresh statistics and a 60s retry delay."""
    return UploadCoordinator(
        store,
        uploader,
        stats=Statistics(),
        retry_delay=60.0,
        clock=clock or FakeClock(),
    )


@pytest.fixture
def ready_file(data_dir: Path) -> Path:
    """Create a DOWNLOADED file."""
    path = data_dir / f"{BASE_ID}.BT"
    path.write_bytes(b"records")
    return path


class TestClassifyResponse:
    """Tests for classify_response."""

    def test_no_response(self) -> None:
        """No response is a transient failure."""
        assert classify_response(None) is UploadOutcome.TRANSIENT_FAILURE

    def test_success(self) -> None:
        """Zero failed records and no errors is a success."""
        assert classify_response(SUCCESS) is UploadOutcome.SUCCESS

    def test_failed_records(self) -> None:
        """Any failed record marks the data corrupt."""
        response = UploadResponse(failed_binrecs=2, errors=["bad record"])
        assert classify_response(response) is UploadOutcome.CORRUPT

    def test_errors_only(self) -> None:
        """Errors alone mark the data corrupt."""
        response = UploadResponse(failed_binrecs=0, errors=["unknown device"])
        assert classify_response(response) is UploadOutcome.CORRUPT

    def test_missing_failed_count(self) -> None:
        """A response without a failed-record count is not trusted."""
        assert classify_response(UploadResponse()) is UploadOutcome.CORRUPT


class TestPollOnce:
    """Tests for UploadCoordinator.poll_once."""

    def test_nothing_ready(self, store: FileStateStore) -> None:
        """Should report no work without ready files."""
        uploader = MagicMock()
        assert make_coordinator(store, uploader).poll_once() is False
        uploader.upload.assert_not_called()

    def test_success(self, store: FileStateStore, data_dir: Path, ready_file: Path) -> None:
        """A successful upload marks the file UPLOADED."""
        uploader = MagicMock()
        uploader.upload.return_value = SUCCESS
        coordinator = make_coordinator(store, uploader)

        assert coordinator.poll_once() is True

        uploader.upload.assert_called_once_with(data_dir / f"{BASE_ID}.UPLOADING", BASE_ID)
        assert store.status_of(BASE_ID) is FileStatus.UPLOADED
        assert (data_dir / f"{BASE_ID}.BTU").read_bytes() == b"records"
        assert coordinator._stats.get(StatsCategory.UPLOADS_REQUESTED) == 1
        assert coordinator._stats.get(StatsCategory.UPLOADS_SUCCESSFUL) == 1

    def test_corrupt(self, store: FileStateStore, ready_file: Path) -> None:
        """Failed records mark the file CORRUPT_DATA."""
        uploader = MagicMock()
        uploader.upload.return_value = UploadResponse.from_dict(
            {"failed_binrecs": 2, "error_arr": ["bad record"]}
        )
        coordinator = make_coordinator(store, uploader)

        coordinator.poll_once()

        assert store.status_of(BASE_ID) is FileStatus.CORRUPT_DATA
        assert coordinator._stats.get(StatsCategory.UPLOADS_FAILED) == 1

    def test_transient_failure_is_deferred(
        self, store: FileStateStore, ready_file: Path
    ) -> None:
        """A failed upload goes back to DOWNLOADED and waits out the retry delay."""
        uploader = MagicMock()
        uploader.upload.return_value = None
        clock = FakeClock()
        coordinator = make_coordinator(store, uploader, clock)

        assert coordinator.poll_once() is True
        assert store.status_of(BASE_ID) is FileStatus.DOWNLOADED
        assert coordinator._stats.get(StatsCategory.UPLOADS_FAILED) == 1

        clock.now += 30
        assert coordinator.poll_once() is False

        clock.now += 30
        uploader.upload.return_value = SUCCESS
        assert coordinator.poll_once() is True
        assert store.status_of(BASE_ID) is FileStatus.UPLOADED
        assert uploader.upload.call_count == 2

    def test_uploader_exception_is_transient(
        self, store: FileStateStore, ready_file: Path
    ) -> None:
        """An unexpected uploader error is treated like no response."""
        uploader = MagicMock()
        uploader.upload.side_effect = RuntimeError("boom")
        coordinator = make_coordinator(store, uploader)

        assert coordinator.poll_once() is True
        assert store.status_of(BASE_ID) is FileStatus.DOWNLOADED

    def test_deferred_file_does_not_block_others(
        self, store: FileStateStore, data_dir: Path, ready_file: Path
    ) -> None:
        """Other files are uploaded while one waits out its delay."""
        (data_dir / "0005E1A4.BT").write_bytes(b"more")
        uploader = MagicMock()
        uploader.upload.side_effect = [None, SUCCESS]
        coordinator = make_coordinator(store, uploader)

        coordinator.poll_once()
        coordinator.poll_once()

        assert store.status_of(BASE_ID) is FileStatus.DOWNLOADED
        assert store.status_of("0005E1A4") is FileStatus.UPLOADED


class TestHandleResponse:
    """Tests for UploadCoordinator.handle_response."""

    def test_rename_failure_after_success(self, store: FileStateStore, data_dir: Path) -> None:
        """A success whose rename fails still counts, and returns None."""
        path = data_dir / f"{BASE_ID}.UPLOADING"
        path.write_bytes(b"x")
        (data_dir / f"{BASE_ID}.BTU").write_bytes(b"x")
        coordinator = make_coordinator(store, MagicMock())

        assert coordinator.handle_response(path, SUCCESS) is None
        assert coordinator._stats.get(StatsCategory.UPLOADS_SUCCESSFUL) == 1
        assert path.exists()

    def test_returns_new_path(self, store: FileStateStore, data_dir: Path) -> None:
        """Should return the renamed path."""
        path = data_dir / f"{BASE_ID}.UPLOADING"
        path.write_bytes(b"x")
        coordinator = make_coordinator(store, MagicMock())

        assert coordinator.handle_response(path, SUCCESS) == data_dir / f"{BASE_ID}.BTU"
