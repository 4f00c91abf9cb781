"""Transfer statistics for the gateway.

Counts requested, successful and failed downloads, uploads and device
deletes. The rendered table is the gateway's periodic user-facing report.
"""

from __future__ import annotations

import threading
from enum import Enum, auto


class StatsCategory(Enum):
    """Counter categories."""

    DOWNLOADS_REQUESTED = auto()
    DOWNLOADS_SUCCESSFUL = auto()
    DOWNLOADS_FAILED = auto()
    UPLOADS_REQUESTED = auto()
    UPLOADS_SUCCESSFUL = auto()
    UPLOADS_FAILED = auto()
    DELETES_REQUESTED = auto()
    DELETES_SUCCESSFUL = auto()
    DELETES_FAILED = auto()


class Statistics:
    """Thread-safe transfer counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts = {category: 0 for category in StatsCategory}

    def increment(self, category: StatsCategory) -> int:
        """Increment a counter.

        Returns:
            The new value.
        """
        with self._lock:
            self._counts[category] += 1
            return self._counts[category]

    def get(self, category: StatsCategory) -> int:
        """Get a counter value."""
        with self._lock:
            return self._counts[category]

    def snapshot(self) -> dict[StatsCategory, int]:
        """Get a consistent copy of all counters."""
        with self._lock:
            return dict(self._counts)

    def render(self) -> str:
        """Render the counters as a table."""
        c = self.snapshot()
        rows = [
            ("Downloads from Device", "DOWNLOADS"),
            ("Uploads to Server", "UPLOADS"),
            ("Deletes from Device", "DELETES"),
        ]
        lines = [
            "",
            " _________________________________________________________ ",
            "|                                                         |",
            "|                         Requested   Successful   Failed |",
            "|                         ---------   ----------   ------ |",
        ]
        for label, prefix in rows:
            lines.append(
                f"| {label:<22}     {c[StatsCategory[prefix + '_REQUESTED']]:6d}"
                f"       {c[StatsCategory[prefix + '_SUCCESSFUL']]:6d}"
                f"   {c[StatsCategory[prefix + '_FAILED']]:6d} |"
            )
        lines.append("|_________________________________________________________|")
        return "\n".join(lines)
