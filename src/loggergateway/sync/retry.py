"""Retry policies for the synchronization engine.

This module provides two distinct policies that must not be mixed up:
- ChecksumRetryPolicy: bounded re-downloads of a file whose checksum failed,
  after which the file is abandoned (deleted from the device, kept locally)
- TransientBackoff: unbounded exponential backoff for network and device
  hiccups, which never give up

PollBackoff combines them into the delay before the next device poll.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum, auto

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_CHECKSUM_RETRIES = 10
DEFAULT_INITIAL_BACKOFF = 5.0  # seconds
DEFAULT_MAX_BACKOFF = 60.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0


class ChecksumRetryPolicy:
    """Bounded retry rule for files that fail checksum verification.

    Counts are kept in memory per filename, so a restart resets them.
    """

    def __init__(self, max_retries: int = DEFAULT_MAX_CHECKSUM_RETRIES) -> None:
        """Initialize the policy.

        Args:
            max_retries: Number of checksum failures after which a file is
                given up on.
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._max_retries = max_retries
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def max_retries(self) -> int:
        """Get the retry bound."""
        return self._max_retries

    def record_failure(self, filename: str) -> int:
        """Record one more checksum failure for a file.

        Returns:
            The number of failures recorded so far.
        """
        key = filename.upper()
        with self._lock:
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            return count

    def is_exhausted(self, count: int) -> bool:
        """Check whether a failure count has reached the bound."""
        return count >= self._max_retries

    def count(self, filename: str) -> int:
        """Get the failures recorded for a file."""
        with self._lock:
            return self._counts.get(filename.upper(), 0)

    def clear(self, filename: str) -> None:
        """Forget a file's failures (after the device erased it)."""
        with self._lock:
            self._counts.pop(filename.upper(), None)


class TransientBackoff:
    """Unbounded exponential backoff for transient failures."""

    def __init__(
        self,
        initial: float = DEFAULT_INITIAL_BACKOFF,
        maximum: float = DEFAULT_MAX_BACKOFF,
        multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    ) -> None:
        self._initial = initial
        self._maximum = maximum
        self._multiplier = multiplier
        self._failures = 0
        self._lock = threading.Lock()

    @property
    def failures(self) -> int:
        """Get the number of consecutive failures."""
        return self._failures

    def next_delay(self) -> float:
        """Record a failure and get the delay before the next attempt."""
        with self._lock:
            delay = self._initial * (self._multiplier**self._failures)
            self._failures += 1
            return min(delay, self._maximum)

    def reset(self) -> None:
        """Reset after a successful attempt."""
        with self._lock:
            self._failures = 0


class PollOutcome(Enum):
    """Result of one device poll cycle."""

    ACTED = auto()  # Device reported files
    IDLE = auto()  # Device reported no files
    FAILED = auto()  # Device list request failed


class PollBackoff:
    """Adaptive delay between device polls.

    Polls again quickly after acting on files, slowly when the device is
    idle, and with growing delays while device calls keep failing.
    """

    def __init__(
        self,
        active_delay: float = 1.0,
        idle_delay: float = 60.0,
        failure_backoff: TransientBackoff | None = None,
    ) -> None:
        self._active_delay = active_delay
        self._idle_delay = idle_delay
        self._failure_backoff = failure_backoff or TransientBackoff()

    def next_delay(self, outcome: PollOutcome) -> float:
        """Get the delay before the next poll.

        Args:
            outcome: Outcome of the poll that just finished.

        Returns:
            Delay in seconds.
        """
        if outcome is PollOutcome.FAILED:
            delay = self._failure_backoff.next_delay()
            logger.debug(
                f"Device poll failed {self._failure_backoff.failures} time(s) in a row, "
                f"retrying in {delay:.1f}s"
            )
            return delay

        self._failure_backoff.reset()
        if outcome is PollOutcome.IDLE:
            return self._idle_delay
        return self._active_delay
