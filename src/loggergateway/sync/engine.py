"""Synchronization engine for one device session.

This module provides:
- SyncEngine: Wires the store, coordinators, scheduler and statistics together

The engine runs two self-rescheduling loops:
1. The device poll, on the single device thread, whose next run is delayed
   according to what the last poll found
2. A fixed number of upload workers, each uploading one file per run and
   rescheduling itself immediately while there is work, or after an idle
   delay when there is none

A file saved with a correct checksum wakes idle upload workers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from loggergateway.core.config import GatewayConfig
from loggergateway.sync.download import DownloadCoordinator
from loggergateway.sync.retry import ChecksumRetryPolicy, PollBackoff, TransientBackoff
from loggergateway.sync.scheduler import DEVICE_EXECUTOR, TaskScheduler
from loggergateway.sync.stats import Statistics
from loggergateway.sync.upload import UploadCoordinator

if TYPE_CHECKING:
    from pathlib import Path

    from loggergateway.device.base import Device
    from loggergateway.sync.store import FileStateStore
    from loggergateway.sync.upload import Uploader

logger = logging.getLogger(__name__)

POLL_JOB_ID = "device-poll"


class SyncEngine:
    """One synchronization session for one device and server.

    Either side may be absent: without a device the engine only uploads
    files already on disk, without an uploader it only downloads.

    Usage:
        engine = SyncEngine(store, device=device, uploader=client, config=config)
        engine.start()
        ...
        engine.stop()
    """

    def __init__(
        self,
        store: FileStateStore,
        device: Device | None = None,
        uploader: Uploader | None = None,
        config: GatewayConfig | None = None,
        scheduler: TaskScheduler | None = None,
        stats: Statistics | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Data file store for the device's directory.
            device: Device to download from, or None to disable downloads.
            uploader: Upload client, or None to disable uploads.
            config: Engine tuning.
            scheduler: Task scheduler; created from config if not given.
            stats: Statistics; created if not given.

        Raises:
            ValueError: If both device and uploader are None.
        """
        if device is None and uploader is None:
            raise ValueError("Both download and upload are disabled, nothing to do")

        self._config = config or GatewayConfig()
        self._store = store
        self._stats = stats or Statistics()
        self._scheduler = scheduler or TaskScheduler(workers=self._config.upload_workers)
        self._running = False

        self._download: DownloadCoordinator | None = None
        if device is not None:
            self._download = DownloadCoordinator(
                device,
                store,
                retry_policy=ChecksumRetryPolicy(self._config.max_checksum_retries),
                stats=self._stats,
                dispatch=self._scheduler.submit_device_task,
            )
            self._poll_backoff = PollBackoff(
                active_delay=self._config.active_poll_delay,
                idle_delay=self._config.idle_poll_delay,
                failure_backoff=TransientBackoff(
                    initial=self._config.failure_poll_delay,
                    maximum=self._config.max_failure_poll_delay,
                ),
            )

        self._upload: UploadCoordinator | None = None
        if uploader is not None:
            self._upload = UploadCoordinator(
                store,
                uploader,
                stats=self._stats,
                retry_delay=self._config.upload_retry_delay,
            )
            store.set_on_downloaded(self._on_file_downloaded)

    @property
    def stats(self) -> Statistics:
        """Get transfer statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Check if the engine has been started and not stopped."""
        return self._running

    @property
    def download_coordinator(self) -> DownloadCoordinator | None:
        """Get the download coordinator, if downloads are enabled."""
        return self._download

    @property
    def upload_coordinator(self) -> UploadCoordinator | None:
        """Get the upload coordinator, if uploads are enabled."""
        return self._upload

    def _upload_job_id(self, index: int) -> str:
        return f"upload-worker-{index}"

    def start(self) -> None:
        """Recover from a previous crash and start both loops."""
        if self._running:
            logger.warning("Sync engine already running")
            return

        self._store.recover_from_crash()

        self._scheduler.start()
        self._running = True

        if self._upload is not None:
            ready = len(self._store.files_ready_for_upload())
            if ready:
                logger.info(f"Found {ready} local file(s) to upload")
            else:
                logger.info("No local file(s) found which need to be uploaded")
            for index in range(self._config.upload_workers):
                self._schedule_upload_worker(index, 0.0)

        if self._download is not None:
            self._scheduler.schedule(
                self._run_poll, 0.0, job_id=POLL_JOB_ID, executor=DEVICE_EXECUTOR
            )

        logger.info(f"Sync engine started for {self._store.directory}")

    def stop(self) -> bool:
        """Stop both loops, waiting up to the configured shutdown timeout.

        Files left UPLOADING by abandoned tasks are recovered at next start.

        Returns:
            True if all running tasks finished in time.
        """
        if not self._running:
            return True
        self._running = False
        finished = self._scheduler.stop(timeout=self._config.shutdown_timeout)
        logger.info(self._stats.render())
        return finished

    def _run_poll(self) -> None:
        if self._download is None:
            return
        outcome = self._download.poll_once()
        logger.info(self._stats.render())

        delay = self._poll_backoff.next_delay(outcome)
        logger.debug(f"Next device poll in {delay:.1f}s")
        self._scheduler.schedule(
            self._run_poll, delay, job_id=POLL_JOB_ID, executor=DEVICE_EXECUTOR
        )

    def _schedule_upload_worker(self, index: int, delay: float) -> None:
        def run() -> None:
            self._run_upload_worker(index)

        self._scheduler.schedule(run, delay, job_id=self._upload_job_id(index))

    def _run_upload_worker(self, index: int) -> None:
        if self._upload is None:
            return
        worked = self._upload.poll_once()
        delay = 0.0 if worked else self._config.upload_idle_delay
        self._schedule_upload_worker(index, delay)

    def _on_file_downloaded(self, path: Path) -> None:
        """Wake idle upload workers for a newly downloaded file."""
        if not self._running:
            return
        logger.debug(f"Waking upload workers for {path.name}")
        for index in range(self._config.upload_workers):
            if self._scheduler.run_now(self._upload_job_id(index)):
                break
