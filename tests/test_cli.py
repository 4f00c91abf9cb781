"""Tests for CLI commands - run, status, verify."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from loggergateway.cli import cli
from loggergateway.core.checksum import append_trailer


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Write a config file with its data root under tmp_path."""
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "server": {"host": "esp.example.org", "port": "80"},
                "device": {"username": "alice", "device_nickname": "BaseStation"},
                "gateway": {
                    "data_root": str(tmp_path / "data"),
                    "active_poll_delay": 0.05,
                    "idle_poll_delay": 0.05,
                    "shutdown_timeout": 5,
                },
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def device_data_dir(tmp_path: Path) -> Path:
    """Get the data directory the config above resolves to."""
    return tmp_path / "data" / "esp.example.org_80" / "Useralice" / "BaseStation"


class TestVerifyCommand:
    """Tests for 'loggergateway verify' command."""

    def test_correct_checksum(self, runner: CliRunner, tmp_path: Path) -> None:
        """Should report OK for a file with a matching trailer."""
        path = tmp_path / "0005E1A3.BT"
        path.write_bytes(append_trailer(b"records"))

        result = runner.invoke(cli, ["verify", str(path)])

        assert result.exit_code == 0
        assert "OK" in result.output

    def test_incorrect_checksum(self, runner: CliRunner, tmp_path: Path) -> None:
        """Should fail for a file whose trailer does not match."""
        path = tmp_path / "0005E1A3.BT"
        path.write_bytes(b"records\x00\x00\x00\x00")

        result = runner.invoke(cli, ["verify", str(path)])

        assert result.exit_code == 1
        assert "INCORRECT CHECKSUM" in result.output

    def test_truncated(self, runner: CliRunner, tmp_path: Path) -> None:
        """Should fail for a file shorter than the trailer."""
        path = tmp_path / "0005E1A3.BT"
        path.write_bytes(b"ab")

        result = runner.invoke(cli, ["verify", str(path)])

        assert result.exit_code == 1


class TestStatusCommand:
    """Tests for 'loggergateway status' command."""

    def test_counts(
        self, runner: CliRunner, config_path: Path, device_data_dir: Path
    ) -> None:
        """Should list counts per state."""
        device_data_dir.mkdir(parents=True)
        (device_data_dir / "00000001.BT").write_bytes(b"x")
        (device_data_dir / "00000002.BTU").write_bytes(b"x")
        (device_data_dir / "00000003.BTU").write_bytes(b"x")

        result = runner.invoke(cli, ["status", "--config", str(config_path)])

        assert result.exit_code == 0
        uploaded = next(line for line in result.output.splitlines() if "UPLOADED" in line)
        assert uploaded.split() == ["UPLOADED", ".BTU", "2"]

    def test_no_data_directory(self, runner: CliRunner, config_path: Path) -> None:
        """Should say so when nothing was downloaded yet."""
        result = runner.invoke(cli, ["status", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "No data directory yet" in result.output

    def test_missing_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """Should fail with a readable error."""
        result = runner.invoke(cli, ["status", "--config", str(tmp_path / "none.json")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestRunCommand:
    """Tests for 'loggergateway run' command."""

    @pytest.fixture(autouse=True)
    def no_logging_setup(self):  # type: ignore[no-untyped-def]
        """Keep the CLI from reconfiguring logging during tests."""
        with patch("loggergateway.cli.run.setup_logging"):
            yield

    def test_missing_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """Should fail with a readable error."""
        result = runner.invoke(cli, ["run", "--config", str(tmp_path / "none.json")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_nothing_to_do(self, runner: CliRunner, config_path: Path) -> None:
        """Should refuse to run without a device and without uploads."""
        result = runner.invoke(cli, ["run", "--config", str(config_path), "--no-upload"])

        assert result.exit_code == 1
        assert "nothing to do" in result.output

    def test_downloads_until_interrupted(
        self,
        runner: CliRunner,
        config_path: Path,
        device_data_dir: Path,
        tmp_path: Path,
    ) -> None:
        """Should download device files, then stop cleanly on Ctrl+C."""
        card = tmp_path / "card"
        card.mkdir()
        (card / "0005E1A3.BT").write_bytes(append_trailer(b"records"))
        downloaded = device_data_dir / "0005E1A3.BT"
        stop = threading.Event()

        def fake_sleep(_seconds: float) -> None:
            for _ in range(50):
                if downloaded.exists():
                    break
                stop.wait(0.1)
            raise KeyboardInterrupt

        fake_time = MagicMock()
        fake_time.sleep.side_effect = fake_sleep
        with patch("loggergateway.cli.run.time", fake_time):
            result = runner.invoke(
                cli,
                ["run", "--config", str(config_path), "--device-dir", str(card), "--no-upload"],
            )

        assert result.exit_code == 0
        assert "Stopping" in result.output
        assert downloaded.read_bytes() == b"records"
