"""Command-line interface for bucketsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- run: Synchronize a folder with a bucket (initial sync, then watch)
- status: Show pending operations without executing them
"""

from __future__ import annotations

import click

from bucketsync.cli.common import build_components, load_sync_config, setup_logging
from bucketsync.cli.run import run
from bucketsync.cli.status import status


@click.group()
@click.version_option(package_name="bucketsync")
def cli() -> None:
    """bucketsync - Keep a local folder and an S3 bucket in sync."""


cli.add_command(run)
cli.add_command(status)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "build_components",
    "cli",
    "load_sync_config",
    "main",
    "setup_logging",
]
