"""Status command for bucketsync CLI.

Commands:
- status: Show what a bidirectional sync would do, without doing it
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from bucketsync.cli.common import build_components, load_sync_config, setup_logging
from bucketsync.sync import (
    BucketTransfers,
    Direction,
    ListingFailure,
    ReconciliationEngine,
    ScanFailure,
    StateScanner,
    SyncState,
)


@click.command()
@click.option("--root", type=click.Path(path_type=Path), default=None, help="Local folder to sync (LOCAL_FOLDER_PATH).")
@click.option("--bucket", default=None, help="Bucket name (BUCKET_NAME); file:///dir for a local directory.")
@click.option("--endpoint-url", default=None, help="Endpoint of an S3-compatible store (S3_ENDPOINT_URL).")
def status(root: Path | None, bucket: str | None, endpoint_url: str | None) -> None:
    """Show pending operations between the folder and the bucket."""
    setup_logging(logging.WARNING)
    config = load_sync_config(local_root=root, bucket_name=bucket, endpoint_url=endpoint_url)
    store, filesystem = build_components(config)
    scanner = StateScanner(store, filesystem)

    try:
        remote_records = scanner.list_remote()
        local_scan = scanner.scan_local()
    except (ListingFailure, ScanFailure) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    state = SyncState()
    state.remote.replace_all(remote_records)
    state.local.replace_all(local_scan.records)

    engine = ReconciliationEngine(state, BucketTransfers(store, filesystem), dry_run=True)
    plan = engine.plan(Direction.BOTH, protected=local_scan.unreadable)

    click.echo(f"Local:  {filesystem.root} ({len(state.local)} files)")
    click.echo(f"Remote: {store.location} ({len(state.remote)} objects)")

    if local_scan.unreadable:
        click.echo(click.style("\nUnreadable files:", fg="red"))
        for key in sorted(local_scan.unreadable):
            click.echo(f"  ! {key}")

    if plan.is_empty:
        click.echo("\nEverything is up to date.")
        return

    click.echo(f"\nPending: {plan.summary()}")
    for operation in plan.operations():
        click.echo(f"  {operation}")
