"""Tests for transfer statistics."""

from __future__ import annotations

import threading

from loggergateway.sync.stats import Statistics, StatsCategory


class TestStatistics:
    """Tests for Statistics."""

    def test_starts_at_zero(self) -> None:
        """Every counter starts at zero."""
        stats = Statistics()
        assert set(stats.snapshot().values()) == {0}
        assert len(stats.snapshot()) == 9

    def test_increment(self) -> None:
        """Should return the new value."""
        stats = Statistics()
        assert stats.increment(StatsCategory.UPLOADS_FAILED) == 1
        assert stats.increment(StatsCategory.UPLOADS_FAILED) == 2
        assert stats.get(StatsCategory.UPLOADS_FAILED) == 2
        assert stats.get(StatsCategory.UPLOADS_SUCCESSFUL) == 0

    def test_concurrent_increments(self) -> None:
        """No increments are lost across threads."""
        stats = Statistics()

        def work() -> None:
            for _ in range(1000):
                stats.increment(StatsCategory.DOWNLOADS_REQUESTED)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert stats.get(StatsCategory.DOWNLOADS_REQUESTED) == 8000

    def test_snapshot_is_a_copy(self) -> None:
        """Changing a snapshot does not change the counters."""
        stats = Statistics()
        snapshot = stats.snapshot()
        snapshot[StatsCategory.DELETES_FAILED] = 99
        assert stats.get(StatsCategory.DELETES_FAILED) == 0

    def test_render(self) -> None:
        """Should render one aligned row per transfer kind."""
        stats = Statistics()
        stats.increment(StatsCategory.DOWNLOADS_REQUESTED)
        stats.increment(StatsCategory.DOWNLOADS_REQUESTED)
        stats.increment(StatsCategory.DOWNLOADS_SUCCESSFUL)
        stats.increment(StatsCategory.DELETES_FAILED)

        lines = stats.render().splitlines()

        downloads = next(line for line in lines if "Downloads from Device" in line)
        assert downloads.split()[-4:-1] == ["2", "1", "0"]
        deletes = next(line for line in lines if "Deletes from Device" in line)
        assert deletes.split()[-2] == "1"
        assert any("Uploads to Server" in line for line in lines)
        assert len({len(line) for line in lines if line}) == 1
