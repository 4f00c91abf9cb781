"""Upload coordinator: sends downloaded files to the server.

This module provides:
- UploadOutcome: How an upload attempt ended
- classify_response: Pure interpretation of a server response
- UploadCoordinator: Claims, uploads and finalizes one file per call
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from loggergateway.core.types import FileStatus, compute_base_id
from loggergateway.sync.stats import Statistics, StatsCategory

if TYPE_CHECKING:
    from collections.abc import Callable

    from loggergateway.api import UploadResponse
    from loggergateway.sync.store import FileStateStore

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_RETRY_DELAY = 60.0  # seconds


class UploadOutcome(Enum):
    """How an upload attempt ended."""

    TRANSIENT_FAILURE = auto()  # No usable response, retry later
    CORRUPT = auto()  # Server rejected records, never retry
    SUCCESS = auto()


_OUTCOME_STATUS = {
    UploadOutcome.TRANSIENT_FAILURE: FileStatus.DOWNLOADED,
    UploadOutcome.CORRUPT: FileStatus.CORRUPT_DATA,
    UploadOutcome.SUCCESS: FileStatus.UPLOADED,
}


class Uploader(Protocol):
    """Protocol for the HTTP side of an upload."""

    def upload(self, path: Path, base_id: str) -> UploadResponse | None: ...


def classify_response(response: UploadResponse | None) -> UploadOutcome:
    """Interpret an upload response.

    Args:
        response: Parsed server response, or None if there was none.

    Returns:
        TRANSIENT_FAILURE for no response, CORRUPT if the server reported
        failed records or errors (or no failed-record count at all),
        SUCCESS otherwise.
    """
    if response is None:
        return UploadOutcome.TRANSIENT_FAILURE
    if response.failed_binrecs is None or response.failed_binrecs > 0 or response.errors:
        return UploadOutcome.CORRUPT
    return UploadOutcome.SUCCESS


class UploadCoordinator:
    """Uploads DOWNLOADED files and records the result in their suffix.

    Each call to poll_once() handles at most one file, so several workers
    can call it concurrently; the store's claim rename keeps them apart.

    Usage:
        coordinator = UploadCoordinator(store, UploadClient(server, device))
        while coordinator.poll_once():
            pass
    """

    def __init__(
        self,
        store: FileStateStore,
        uploader: Uploader,
        stats: Statistics | None = None,
        retry_delay: float = DEFAULT_UPLOAD_RETRY_DELAY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Data file store.
            uploader: HTTP uploader.
            stats: Statistics to update.
            retry_delay: Seconds before a file whose upload failed is retried.
            clock: Monotonic clock (for testing).
        """
        self._store = store
        self._uploader = uploader
        self._stats = stats or Statistics()
        self._retry_delay = retry_delay
        self._clock = clock

        # Base id -> earliest monotonic time of the next attempt
        self._retry_after: dict[str, float] = {}
        self._lock = threading.Lock()

    def is_eligible(self, path: Path) -> bool:
        """Check whether a downloaded file may be uploaded now."""
        base_id = compute_base_id(path.name)
        with self._lock:
            deadline = self._retry_after.get(base_id)
            if deadline is None:
                return True
            if self._clock() >= deadline:
                del self._retry_after[base_id]
                return True
            return False

    def _defer(self, base_id: str) -> None:
        with self._lock:
            self._retry_after[base_id] = self._clock() + self._retry_delay

    def poll_once(self) -> bool:
        """Upload one ready file, if any.

        Returns:
            True if a file was processed (whatever the outcome).
        """
        path = self._store.claim_for_upload(eligible=self.is_eligible)
        if path is None:
            return False

        self._stats.increment(StatsCategory.UPLOADS_REQUESTED)
        base_id = compute_base_id(path.name)
        logger.info(f"Uploading file {base_id} to server...")

        try:
            response = self._uploader.upload(path, base_id)
        except Exception:
            logger.exception(f"Unexpected error uploading {path.name}")
            response = None

        self.handle_response(path, response)
        return True

    def handle_response(self, path: Path, response: UploadResponse | None) -> Path | None:
        """Move an UPLOADING file to the state its upload response calls for.

        Args:
            path: The UPLOADING file.
            response: Server response, or None if the upload failed.

        Returns:
            The file's new path, or None if the rename failed.
        """
        outcome = classify_response(response)
        base_id = compute_base_id(path.name)
        new_path = self._store.transition(path, FileStatus.UPLOADING, _OUTCOME_STATUS[outcome])

        if outcome is UploadOutcome.SUCCESS:
            self._stats.increment(StatsCategory.UPLOADS_SUCCESSFUL)
            if new_path is None:
                logger.error(
                    f"File {base_id} uploaded successfully, but could not be renamed "
                    f"to {FileStatus.UPLOADED.suffix}"
                )
            else:
                logger.info(f"File {new_path.name} uploaded successfully")
            return new_path

        self._stats.increment(StatsCategory.UPLOADS_FAILED)

        if outcome is UploadOutcome.CORRUPT and response is not None:
            logger.error(
                f"File {base_id} failed to upload. Failed binrecs = "
                f"{response.failed_binrecs} and errors = {response.errors}"
            )
            if new_path is None:
                logger.error(
                    f"Failed to mark {path.name} as having corrupt data, "
                    f"no further action will be taken on it"
                )
            return new_path

        if new_path is None:
            logger.error(f"Failed to rename {path.name} back after a failed upload")
            return None

        self._defer(base_id)
        logger.warning(
            f"Failed to upload data file {new_path.name}, "
            f"will retry in {self._retry_delay:.0f}s"
        )
        return new_path
