"""Run command for the loggergateway CLI.

Commands:
- run: Synchronize a device's data files with the server until interrupted
"""

from __future__ import annotations

import sys
import time
from pathlib import Path

import click

from loggergateway.cli.logs import LOGGING_LEVELS, setup_logging
from loggergateway.core.config import (
    ConfigError,
    device_data_directory,
    get_config_dir,
    load_config,
)


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=lambda: get_config_dir() / "config.json",
    show_default="~/.loggergateway/config.json",
    help="Path to the JSON config file.",
)
@click.option(
    "--device-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the device's files. Without it, only files "
    "already in the data directory are uploaded.",
)
@click.option("--no-upload", is_flag=True, help="Download files but do not upload them.")
@click.option(
    "--logging-level",
    type=click.Choice(sorted(LOGGING_LEVELS)),
    default="info",
    show_default=True,
    help="Logging level for console and log file.",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=lambda: get_config_dir() / "gateway.log",
    show_default="~/.loggergateway/gateway.log",
    help="Path to the log file.",
)
def run(
    config_path: Path,
    device_dir: Path | None,
    no_upload: bool,
    logging_level: str,
    log_file: Path,
) -> None:
    """Synchronize device data files with the server.

    Downloads files from the device, uploads them to the server, and
    deletes them from the device once the server has them.
    Runs until interrupted with Ctrl+C.
    """
    from loggergateway.api import UploadClient
    from loggergateway.device.directory import DirectoryDevice
    from loggergateway.sync import FileStateStore, SyncEngine

    setup_logging(log_file, logging_level)

    try:
        server, device_config, gateway = load_config(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if device_dir is None and no_upload:
        click.echo(
            "Error: No device directory and uploads disabled, nothing to do.",
            err=True,
        )
        sys.exit(1)

    data_dir = device_data_directory(gateway.data_root, server, device_config)
    store = FileStateStore(data_dir)

    device = None
    if device_dir is not None:
        device = DirectoryDevice(device_dir)
        click.echo(
            f"Reading files for device [{device_config.device_nickname}] "
            f"of user [{device_config.username}] from {device_dir}"
        )
    else:
        click.echo("No device directory given, data files will not be downloaded.")

    client = None
    if no_upload:
        click.echo("Data files will not be uploaded since you specified --no-upload.")
    else:
        client = UploadClient(server, device_config)
        click.echo(f"Data files will be uploaded to {server.host}:{server.port}")

    engine = SyncEngine(store, device=device, uploader=client, config=gateway)

    click.echo(f"Data directory: {data_dir}")
    engine.start()
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        finished = engine.stop()
        if client is not None:
            client.close()
        if not finished:
            click.echo(
                "Some transfers did not finish in time; they will be recovered on next start."
            )
