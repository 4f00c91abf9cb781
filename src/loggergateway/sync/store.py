"""On-disk state store for downloaded data files.

This module provides:
- FileStateStore: Sole authority over the data file directory

Architecture:
    Each data file is identified by its base id (8 hex digits, the device
    timestamp). Its status is encoded only in the filename suffix, e.g.
    "0005E1A3.BT" is DOWNLOADED and "0005E1A3.BTU" is UPLOADED. There is
    no index: every query is a directory scan, and every transition is a
    rename. At most one file per base id exists at any time.

    All directory mutation happens while holding the store's lock. Failures
    are logged and reported as None so the next poll cycle re-evaluates
    the file.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from loggergateway.core.types import FileStatus, compute_base_id, is_valid_base_id

if TYPE_CHECKING:
    from collections.abc import Callable

    from loggergateway.device.base import DataFile

logger = logging.getLogger(__name__)


class FileStateStore:
    """Filesystem-backed state machine for data files.

    Usage:
        store = FileStateStore(data_dir, on_downloaded=uploader_wakeup)
        store.recover_from_crash()

        if store.status_of("0005E1A3") is None:
            store.save(data_file)
    """

    def __init__(
        self,
        directory: Path,
        on_downloaded: Callable[[Path], None] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            directory: Data file directory for one device. Created if missing.
            on_downloaded: Called with the path of each checksum-correct file
                saved, after the lock is released.
        """
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._on_downloaded = on_downloaded

    @property
    def directory(self) -> Path:
        """Get the data file directory."""
        return self._directory

    @property
    def lock(self) -> threading.RLock:
        """Get the directory lock."""
        return self._lock

    def set_on_downloaded(self, callback: Callable[[Path], None] | None) -> None:
        """Set callback for successfully saved files."""
        self._on_downloaded = callback

    # === Queries ===

    def _list(self) -> list[Path]:
        try:
            return sorted(p for p in self._directory.iterdir() if p.is_file())
        except OSError as e:
            logger.error(f"Failed to list data directory {self._directory}: {e}")
            return []

    def files_for_base_id(self, base_id: str) -> list[Path]:
        """Get all status-bearing files with the given base id.

        Args:
            base_id: 8-hex-digit base id (any case).

        Returns:
            Sorted list of paths; more than one entry is an invariant violation.
            Empty for an invalid base id.
        """
        if not is_valid_base_id(base_id):
            logger.error(f"Invalid base id {base_id!r}, no files match")
            return []
        wanted = base_id.upper()
        with self._lock:
            return [
                p
                for p in self._list()
                if compute_base_id(p.name) == wanted
                and FileStatus.from_filename(p.name) is not None
            ]

    def status_of(self, base_id: str) -> FileStatus | None:
        """Get the status of the file with the given base id.

        Args:
            base_id: 8-hex-digit base id (any case).

        Returns:
            The file's status, or None if no file exists for this id.
        """
        with self._lock:
            files = self.files_for_base_id(base_id)
            if not files:
                return None
            if len(files) > 1:
                logger.error(
                    f"Found {len(files)} files for base id {base_id} "
                    f"({', '.join(p.name for p in files)}), using {files[0].name}"
                )
            return FileStatus.from_filename(files[0].name)

    def files_with_status(self, status: FileStatus) -> list[Path]:
        """Get all files with the given status, sorted by name."""
        with self._lock:
            return [p for p in self._list() if FileStatus.from_filename(p.name) is status]

    def files_ready_for_upload(self) -> list[Path]:
        """Get all files waiting to be uploaded."""
        return self.files_with_status(FileStatus.DOWNLOADED)

    def status_counts(self) -> dict[FileStatus, int]:
        """Count files per status."""
        counts = {status: 0 for status in FileStatus}
        with self._lock:
            for path in self._list():
                status = FileStatus.from_filename(path.name)
                if status is not None:
                    counts[status] += 1
        return counts

    # === Transitions ===

    def transition(
        self,
        path: Path,
        from_status: FileStatus,
        to_status: FileStatus,
    ) -> Path | None:
        """Rename a file from one status suffix to another.

        Args:
            path: Current path of the file.
            from_status: Status the file is expected to have.
            to_status: Status to move it to.

        Returns:
            The new path, or None if the file does not have from_status,
            the target already exists, or the rename failed. The file
            stays in its current state in that case.
        """
        path = Path(path)
        if not from_status.has_status(path):
            logger.error(
                f"Cannot move {path.name} from {from_status.name}: "
                f"it does not have suffix {from_status.suffix}"
            )
            return None

        stem = path.name[: len(path.name) - len(from_status.suffix)]
        new_path = path.with_name(stem + to_status.suffix)

        with self._lock:
            if new_path.exists():
                logger.error(f"Failed to rename {path.name} to {new_path.name}: target exists")
                return None
            try:
                path.rename(new_path)
            except OSError as e:
                logger.error(f"Failed to rename {path.name} to {new_path.name}: {e}")
                return None

        logger.debug(f"Renamed {path.name} to {new_path.name}")
        return new_path

    def claim_for_upload(
        self,
        eligible: Callable[[Path], bool] | None = None,
    ) -> Path | None:
        """Take one downloaded file and mark it as uploading.

        The rename to UPLOADING is what keeps two workers from uploading
        the same file.

        Args:
            eligible: Optional filter; files it rejects are skipped.

        Returns:
            Path of the claimed (now UPLOADING) file, or None if none is ready.
        """
        with self._lock:
            for path in self.files_ready_for_upload():
                if eligible is not None and not eligible(path):
                    continue
                claimed = self.transition(path, FileStatus.DOWNLOADED, FileStatus.UPLOADING)
                if claimed is not None:
                    return claimed
                logger.error(f"Failed to claim {path.name} for upload, skipping")
        return None

    def _delete(self, path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error(f"Failed to delete {path.name}: {e}")
            return False

    # === Saving ===

    def save(self, data_file: DataFile) -> Path | None:
        """Save a file downloaded from the device.

        The payload is written to "<base id>.WRITING" and then renamed to
        DOWNLOADED or INCORRECT_CHECKSUM depending on the checksum. A file
        that already exists with any status other than INCORRECT_CHECKSUM
        is left alone (duplicate download).

        Args:
            data_file: File received from the device.

        Returns:
            Path of the saved file, or None if nothing was saved.
        """
        if data_file.is_empty:
            return None

        base_id = data_file.base_id
        if not is_valid_base_id(base_id):
            logger.error(f"Refusing to save {data_file.filename!r}: invalid base id")
            return None

        logger.debug(f"Request to save {data_file.filename} ({data_file.length} bytes)")

        checksum_ok = data_file.is_checksum_correct
        saved: Path | None = None

        with self._lock:
            existing = self.files_for_base_id(base_id)
            status = FileStatus.from_filename(existing[0].name) if existing else None

            if status is not None and status is not FileStatus.INCORRECT_CHECKSUM:
                logger.info(
                    f"File {base_id} already exists with status {status.name}, "
                    f"ignoring duplicate download"
                )
                return None

            if status is FileStatus.INCORRECT_CHECKSUM:
                if self._delete(existing[0]):
                    logger.debug(f"Deleted incorrect checksum file {existing[0].name}")
                else:
                    return None

            temp_path = self._directory / f"{base_id}{FileStatus.WRITING.suffix}"
            try:
                with temp_path.open("wb") as f:
                    f.write(data_file.payload)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                logger.error(f"Failed to write {temp_path.name}: {e}")
                self._delete(temp_path)
                return None

            target = FileStatus.DOWNLOADED if checksum_ok else FileStatus.INCORRECT_CHECKSUM
            if not checksum_ok:
                logger.warning(f"Checksum failed for data file {data_file.filename}")

            saved = self.transition(temp_path, FileStatus.WRITING, target)
            if saved is None:
                logger.error(
                    f"Failed to rename {temp_path.name} to {target.suffix}, "
                    f"deleting temp file"
                )
                self._delete(temp_path)
                return None

        logger.info(f"Data file {saved.name} saved")

        if checksum_ok and self._on_downloaded is not None:
            try:
                self._on_downloaded(saved)
            except Exception:
                logger.exception(f"Error notifying download of {saved.name}")

        return saved

    # === Startup ===

    def recover_from_crash(self) -> list[Path]:
        """Repair files left mid-transfer by a previous process.

        UPLOADING files have an unknown server outcome and are renamed back
        to DOWNLOADED so they are uploaded again; the server deduplicates.
        WRITING files were never verified and are deleted; the device still
        holds them, so they are downloaded again.

        Returns:
            Paths of the files returned to DOWNLOADED.
        """
        recovered: list[Path] = []
        with self._lock:
            uploading = self.files_with_status(FileStatus.UPLOADING)
            if uploading:
                logger.info(
                    f"Found {len(uploading)} file(s) which were being uploaded when "
                    f"the gateway last stopped, renaming them so they are uploaded again"
                )
            for path in uploading:
                new_path = self.transition(path, FileStatus.UPLOADING, FileStatus.DOWNLOADED)
                if new_path is not None:
                    recovered.append(new_path)

            for path in self.files_with_status(FileStatus.WRITING):
                logger.info(f"Deleting partially written file {path.name}")
                self._delete(path)

        return recovered
