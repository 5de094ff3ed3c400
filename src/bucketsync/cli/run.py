"""Run command for bucketsync CLI.

Commands:
- run: Initial sync, then watch and reconcile until interrupted
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from bucketsync.cli.common import build_components, load_sync_config, setup_logging
from bucketsync.sync import ListingFailure, PassResult, ScanFailure, SyncOrchestrator


def display_summary(result: PassResult, dry_run: bool) -> None:
    """Display the result of a pass."""
    if dry_run:
        planned = result.dry_run_operations
        if not planned:
            click.echo("Everything is up to date.")
            return
        click.echo(click.style(f"\n[DRY RUN] {len(planned)} pending operations:", fg="yellow"))
        for operation in planned:
            click.echo(f"  {operation}")
        return

    if result.errors:
        click.echo(click.style("\nErrors:", fg="red"))
        for error in result.errors:
            click.echo(f"  ✗ {error}")

    if result.executed_count == 0:
        click.echo("Everything is up to date.")
    else:
        click.echo(f"\nSync complete: {result.summary()}")


@click.command()
@click.option("--root", type=click.Path(path_type=Path), default=None, help="Local folder to sync (LOCAL_FOLDER_PATH).")
@click.option("--bucket", default=None, help="Bucket name (BUCKET_NAME); file:///dir for a local directory.")
@click.option("--endpoint-url", default=None, help="Endpoint of an S3-compatible store (S3_ENDPOINT_URL).")
@click.option("--interval", type=float, default=None, help="Seconds between periodic syncs (POLL_INTERVAL_SECONDS).")
@click.option("--dry-run", is_flag=True, default=None, help="Report operations without executing them (DRY_RUN).")
@click.option("--once", is_flag=True, help="Run the initial sync and exit.")
@click.option("--log-file", type=click.Path(path_type=Path), default=None, help="Also write logs to this file.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def run(
    root: Path | None,
    bucket: str | None,
    endpoint_url: str | None,
    interval: float | None,
    dry_run: bool | None,
    once: bool,
    log_file: Path | None,
    verbose: bool,
) -> None:
    """Synchronize a local folder with a bucket.

    Performs an initial bidirectional sync (the bucket wins when both sides
    changed), then watches the folder and reconciles periodically.
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)
    config = load_sync_config(
        local_root=root,
        bucket_name=bucket,
        endpoint_url=endpoint_url,
        poll_interval_seconds=interval,
        dry_run=dry_run or None,
    )

    store, filesystem = build_components(config)
    orchestrator = SyncOrchestrator(
        store,
        filesystem,
        poll_interval=config.poll_interval_seconds,
        dry_run=config.dry_run,
    )

    click.echo(f"Syncing {filesystem.root} with {store.location}")

    try:
        if once:
            result = orchestrator.initial_sync()
        else:
            result = orchestrator.start()
    except (ListingFailure, ScanFailure) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    display_summary(result, config.dry_run)

    if once:
        if result.errors:
            sys.exit(1)
        return

    click.echo("\nWatching for changes... (Ctrl+C to stop)\n")
    orchestrator.run_forever()
    click.echo("Stopped.")
