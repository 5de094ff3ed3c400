"""Shared helpers for bucketsync CLI commands.

This module provides:
- setup_logging: stdout (and optional file) logging for the bucketsync logger
- load_sync_config: Environment configuration with CLI overrides, validated
- build_components: Object store and local filesystem for a configuration
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from bucketsync.core.config import ConfigError, SyncConfig
from bucketsync.storage import ObjectStore, create_object_store
from bucketsync.sync.ignore import IGNORE_FILE_NAME, IgnorePatterns
from bucketsync.sync.local import LocalFilesystem

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Buckets named file:///some/dir are served from a local directory
LOCAL_BUCKET_SCHEME = "file://"


def setup_logging(level: int = logging.INFO, log_file: Path | None = None) -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        level: Level of the bucketsync logger.
        log_file: Optional path of a log file.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("bucketsync")
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # apscheduler logs every job run at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def load_sync_config(**overrides: object) -> SyncConfig:
    """Load the environment configuration, apply overrides and validate.

    Exits with status 1 on an invalid configuration.
    """
    try:
        config = SyncConfig.from_env().with_overrides(**overrides)
        config.validate()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return config


def storage_config(config: SyncConfig) -> dict[str, str | None]:
    """Translate a SyncConfig into create_object_store() settings."""
    if config.bucket_name.startswith(LOCAL_BUCKET_SCHEME):
        return {
            "type": "local",
            "local_path": config.bucket_name[len(LOCAL_BUCKET_SCHEME) :],
        }
    return {
        "type": "s3",
        "bucket": config.bucket_name,
        "endpoint_url": config.endpoint_url,
        "access_key": config.access_key_id,
        "secret_key": config.secret_access_key,
        "region": config.region,
    }


def build_components(config: SyncConfig) -> tuple[ObjectStore, LocalFilesystem]:
    """Create the object store and local filesystem for a configuration."""
    root = config.local_root.resolve()
    ignore = IgnorePatterns()
    ignore.load_from_file(root / IGNORE_FILE_NAME)
    return create_object_store(storage_config(config)), LocalFilesystem(root, ignore)
