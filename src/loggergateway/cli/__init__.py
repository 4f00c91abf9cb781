"""Command-line interface for loggergateway.

This module provides the main CLI entry point and assembles all commands.

Commands:
- run: Synchronize device data files with the server
- status: Show local data files by state
- verify: Check the checksum of a device-format file
"""

from __future__ import annotations

import click

from loggergateway.cli.run import run
from loggergateway.cli.status import status, verify


@click.group()
@click.version_option(package_name="loggergateway")
def cli() -> None:
    """loggergateway - Sync logging device data files to a data store server."""


cli.add_command(run)
cli.add_command(status)
cli.add_command(verify)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
