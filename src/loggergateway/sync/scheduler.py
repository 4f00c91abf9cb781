"""Task scheduler for the synchronization engine.

This module provides:
- TaskScheduler: Delay-based task scheduling on fixed-size thread pools

Two executors are used:
- "device": a single thread, so all device traffic is serialized
- "default": the upload worker pool
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

DEVICE_EXECUTOR = "device"
DEFAULT_EXECUTOR = "default"


class TaskScheduler:
    """Runs one-shot tasks after a delay on bounded thread pools.

    Tasks that want to repeat reschedule themselves when they finish.
    Exceptions raised by tasks are logged and never propagate.

    Usage:
        scheduler = TaskScheduler(workers=4)
        scheduler.start()
        scheduler.schedule(poll, delay=0, job_id="device-poll", executor="device")
        scheduler.stop(timeout=30)
    """

    def __init__(self, workers: int = 4) -> None:
        """Initialize the scheduler.

        Args:
            workers: Size of the default (upload) thread pool.
        """
        self._workers = workers
        self._scheduler: BackgroundScheduler | None = None
        self._stopping = False
        self._in_flight = 0
        self._condition = threading.Condition()

    @property
    def is_running(self) -> bool:
        """Check if the scheduler accepts tasks."""
        return self._scheduler is not None and not self._stopping

    @property
    def in_flight(self) -> int:
        """Get the number of tasks currently running."""
        with self._condition:
            return self._in_flight

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = BackgroundScheduler(
            executors={
                DEFAULT_EXECUTOR: ThreadPoolExecutor(self._workers),
                DEVICE_EXECUTOR: ThreadPoolExecutor(1),
            },
            # Queued tasks must run however late their thread frees up, and a
            # task may reschedule itself before its own run is marked finished
            job_defaults={"misfire_grace_time": None, "coalesce": False, "max_instances": 2},
        )
        self._stopping = False
        self._scheduler.start()
        logger.info(f"Task scheduler started with {self._workers} worker thread(s)")

    def _wrap(self, func: Callable[[], None], name: str) -> Callable[[], None]:
        def run() -> None:
            with self._condition:
                if self._stopping:
                    logger.debug(f"Skipping task {name}: scheduler stopping")
                    return
                self._in_flight += 1
            try:
                func()
            except Exception:
                logger.exception(f"Error in scheduled task {name}")
            finally:
                with self._condition:
                    self._in_flight -= 1
                    self._condition.notify_all()

        return run

    def schedule(
        self,
        func: Callable[[], None],
        delay: float = 0.0,
        job_id: str | None = None,
        executor: str = DEFAULT_EXECUTOR,
    ) -> bool:
        """Run a task once after a delay.

        Args:
            func: Task to run.
            delay: Seconds to wait before running.
            job_id: Optional id; a pending task with the same id is replaced.
            executor: DEFAULT_EXECUTOR or DEVICE_EXECUTOR.

        Returns:
            True if the task was scheduled, False if the scheduler is stopping.
        """
        scheduler = self._scheduler
        if scheduler is None or self._stopping:
            logger.debug(f"Not scheduling {job_id or func!r}: scheduler not running")
            return False

        name = job_id or getattr(func, "__name__", "task")
        run_date = datetime.now().astimezone() + timedelta(seconds=max(delay, 0.0))
        scheduler.add_job(
            self._wrap(func, name),
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            name=name,
            executor=executor,
            replace_existing=job_id is not None,
        )
        return True

    def submit_device_task(self, func: Callable[[], None]) -> None:
        """Run a task on the device thread as soon as it is free."""
        self.schedule(func, executor=DEVICE_EXECUTOR)

    def run_now(self, job_id: str) -> bool:
        """Bring a pending task forward to run immediately.

        Returns:
            False if no task with this id is pending (e.g. it is running).
        """
        scheduler = self._scheduler
        if scheduler is None or self._stopping:
            return False
        try:
            scheduler.modify_job(job_id, next_run_time=datetime.now().astimezone())
            return True
        except JobLookupError:
            return False

    def stop(self, timeout: float = 30.0) -> bool:
        """Stop issuing tasks and wait for running ones.

        Tasks still running after the timeout are abandoned, not killed.

        Args:
            timeout: Maximum seconds to wait.

        Returns:
            True if all tasks finished within the timeout.
        """
        if self._scheduler is None:
            return True

        with self._condition:
            self._stopping = True
        logger.info("Task scheduler stopping...")
        self._scheduler.shutdown(wait=False)

        deadline = time.monotonic() + timeout
        with self._condition:
            while self._in_flight > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._condition.wait(remaining)
            abandoned = self._in_flight

        self._scheduler = None
        if abandoned:
            logger.warning(f"Task scheduler stopped, abandoning {abandoned} running task(s)")
            return False
        logger.info("Task scheduler stopped")
        return True
