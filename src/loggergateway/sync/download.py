"""Download coordinator: reconciles the device's file list with local state.

This module provides:
- DownloadCoordinator: Polls the device and dispatches downloads and erases

Each poll cycle lists the device's files, looks up every file's local
status, and asks the decision table what to do. Downloads and erases run
as separate tasks through the dispatch function, so a slow transfer never
holds up the poll itself.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from loggergateway.core.types import (
    DeviceAction,
    FileStatus,
    compute_base_id,
    is_valid_base_id,
)
from loggergateway.device.base import NoSuchFileError
from loggergateway.sync.decisions import evaluate
from loggergateway.sync.retry import ChecksumRetryPolicy, PollOutcome
from loggergateway.sync.stats import Statistics, StatsCategory

if TYPE_CHECKING:
    from collections.abc import Callable

    from loggergateway.device.base import Device
    from loggergateway.sync.store import FileStateStore

logger = logging.getLogger(__name__)


def _run_inline(task: Callable[[], None]) -> None:
    task()


class DownloadCoordinator:
    """Drives the device side of synchronization.

    Usage:
        coordinator = DownloadCoordinator(device, store, dispatch=scheduler.submit_device_task)
        outcome = coordinator.poll_once()
    """

    def __init__(
        self,
        device: Device,
        store: FileStateStore,
        retry_policy: ChecksumRetryPolicy | None = None,
        stats: Statistics | None = None,
        dispatch: Callable[[Callable[[], None]], None] | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            device: Device to poll.
            store: Data file store.
            retry_policy: Checksum retry bound.
            stats: Statistics to update.
            dispatch: Runs a download or erase task; defaults to running it inline.
        """
        self._device = device
        self._store = store
        self._retry_policy = retry_policy or ChecksumRetryPolicy()
        self._stats = stats or Statistics()
        self._dispatch = dispatch or _run_inline

        # Filenames with a dispatched task that has not finished yet
        self._pending: set[str] = set()
        self._lock = threading.Lock()

    @property
    def retry_policy(self) -> ChecksumRetryPolicy:
        """Get the checksum retry policy."""
        return self._retry_policy

    @property
    def pending(self) -> set[str]:
        """Get filenames with a task in flight."""
        with self._lock:
            return set(self._pending)

    def poll_once(self) -> PollOutcome:
        """Run one poll cycle.

        Returns:
            FAILED if the device list request failed, IDLE if the device has
            no files, ACTED otherwise.
        """
        try:
            available = self._device.list_available_filenames()
        except Exception:
            logger.exception("Error requesting the file list from the device")
            available = None

        if available is None:
            logger.warning("Failed to get the list of available files from the device")
            return PollOutcome.FAILED

        if not available:
            logger.info("No data files are available on the device")
            return PollOutcome.IDLE

        filenames = sorted({name.upper() for name in available})
        logger.info(f"Found {len(filenames)} file(s) available for download from the device")

        for filename in filenames:
            try:
                self._process(filename)
            except Exception:
                logger.exception(f"Error processing device file {filename}")

        return PollOutcome.ACTED

    def decide(self, filename: str) -> DeviceAction:
        """Decide the action for one device file.

        Files whose name carries no valid base id are never acted on, so a
        malformed name can't be matched against an unrelated local file.
        For files with an incorrect checksum, the failures recorded by
        earlier downloads are checked against the retry bound.
        """
        base_id = compute_base_id(filename)
        if not is_valid_base_id(base_id):
            logger.error(f"Device file {filename!r} has no valid base id, skipping")
            return DeviceAction.NO_ACTION

        status = self._store.status_of(base_id)

        exhausted = False
        if status is FileStatus.INCORRECT_CHECKSUM:
            failures = self._retry_policy.count(filename)
            exhausted = self._retry_policy.is_exhausted(failures)
            if exhausted:
                logger.error(
                    f"File {filename} had an incorrect checksum {failures} time(s), "
                    f"giving up and deleting it from the device"
                )
            else:
                logger.warning(
                    f"File {filename} had an incorrect checksum, retrying download "
                    f"({failures}/{self._retry_policy.max_retries})"
                )

        rule = evaluate(status, exhausted)
        logger.debug(f"File {filename}: {rule.action.name} ({rule.reason})")
        return rule.action

    def _process(self, filename: str) -> None:
        with self._lock:
            if filename in self._pending:
                logger.debug(f"File {filename} already has a task in progress, skipping")
                return

        action = self.decide(filename)
        if action is DeviceAction.DOWNLOAD_FROM_DEVICE:
            self._stats.increment(StatsCategory.DOWNLOADS_REQUESTED)
            self._submit(filename, self.download_file)
        elif action is DeviceAction.DELETE_FROM_DEVICE:
            self._stats.increment(StatsCategory.DELETES_REQUESTED)
            self._submit(filename, self.erase_file)

    def _submit(self, filename: str, task: Callable[[str], bool]) -> None:
        with self._lock:
            self._pending.add(filename)

        def run() -> None:
            try:
                task(filename)
            finally:
                with self._lock:
                    self._pending.discard(filename)

        try:
            self._dispatch(run)
        except Exception:
            logger.exception(f"Failed to dispatch task for {filename}")
            with self._lock:
                self._pending.discard(filename)

    def download_file(self, filename: str) -> bool:
        """Download a file from the device and save it.

        Returns:
            True if the file was saved.
        """
        try:
            data_file = self._device.fetch_file(filename)
        except NoSuchFileError:
            self._stats.increment(StatsCategory.DOWNLOADS_FAILED)
            logger.error(f"File {filename} no longer exists on the device, ignoring")
            return False
        except Exception:
            self._stats.increment(StatsCategory.DOWNLOADS_FAILED)
            logger.exception(f"Error downloading {filename} from the device")
            return False

        if data_file is None:
            self._stats.increment(StatsCategory.DOWNLOADS_FAILED)
            logger.error(f"File {filename} failed to download")
            return False

        if data_file.is_empty:
            logger.debug(f"No data available yet for {filename}")
            return False

        saved = self._store.save(data_file)
        if saved is None:
            self._stats.increment(StatsCategory.DOWNLOADS_FAILED)
            logger.error(f"File {filename} was downloaded but could not be saved")
            return False

        self._stats.increment(StatsCategory.DOWNLOADS_SUCCESSFUL)
        # Only a completed transfer that fails verification counts against the bound
        if FileStatus.INCORRECT_CHECKSUM.has_status(saved):
            self._retry_policy.record_failure(filename)
        else:
            self._retry_policy.clear(filename)
        return True

    def erase_file(self, filename: str) -> bool:
        """Ask the device to erase a file.

        Returns:
            True if the device confirmed the erase.
        """
        try:
            erased = self._device.erase_file(filename)
        except Exception:
            logger.exception(f"Error erasing {filename} from the device")
            erased = False

        if erased:
            self._stats.increment(StatsCategory.DELETES_SUCCESSFUL)
            self._retry_policy.clear(filename)
            logger.info(f"File {filename} was deleted from the device")
        else:
            self._stats.increment(StatsCategory.DELETES_FAILED)
            logger.error(f"File {filename} could not be deleted from the device")
        return erased
