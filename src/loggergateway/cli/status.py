"""Inspection commands for the loggergateway CLI.

Commands:
- status: Show how many local data files are in each state
- verify: Check the checksum trailer of a device-format file
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from loggergateway.core.checksum import compute_checksum, split_trailer
from loggergateway.core.config import (
    ConfigError,
    device_data_directory,
    get_config_dir,
    load_config,
)
from loggergateway.core.types import FileStatus


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=lambda: get_config_dir() / "config.json",
    show_default="~/.loggergateway/config.json",
    help="Path to the JSON config file.",
)
def status(config_path: Path) -> None:
    """Show the local data files of the configured device by state."""
    from loggergateway.sync.store import FileStateStore

    try:
        server, device_config, gateway = load_config(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    data_dir = device_data_directory(gateway.data_root, server, device_config)
    if not data_dir.exists():
        click.echo(f"No data directory yet: {data_dir}")
        return

    counts = FileStateStore(data_dir).status_counts()
    click.echo(f"Data directory: {data_dir}")
    for file_status in FileStatus:
        click.echo(f"  {file_status.name:<20} {file_status.suffix:<11} {counts[file_status]:6d}")


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify(path: Path) -> None:
    """Check the CRC trailer of a device-format data file."""
    try:
        payload, expected = split_trailer(path.read_bytes())
    except ValueError as e:
        click.echo(f"{path.name}: {e}", err=True)
        sys.exit(1)

    actual = compute_checksum(payload)
    if actual == expected:
        click.echo(f"{path.name}: OK ({len(payload)} bytes, crc32 {actual:08X})")
    else:
        click.echo(
            f"{path.name}: INCORRECT CHECKSUM (expected {expected:08X}, got {actual:08X})",
            err=True,
        )
        sys.exit(1)
