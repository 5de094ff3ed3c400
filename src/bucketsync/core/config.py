"""Configuration for bucketsync.

This module defines the SyncConfig dataclass and its environment loader.
Values come from process environment variables, optionally seeded from a
``.env`` file in the working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_REGION = "us-east-1"
DEFAULT_POLL_INTERVAL = 60.0

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Raised when the configuration is incomplete or invalid."""


def _parse_bool(value: str | None) -> bool:
    """Parse an environment flag ("true", "1", "yes", "on")."""
    if value is None:
        return False
    return value.strip().lower() in _TRUTHY


@dataclass
class SyncConfig:
    """Settings for one local-root/bucket pair.

    Attributes:
        bucket_name: Name of the remote bucket.
        local_root: Directory being synchronized (None if not configured).
        region: AWS region of the bucket.
        access_key_id: Access key (None lets boto3 use its credential chain).
        secret_access_key: Secret key matching access_key_id.
        endpoint_url: Custom endpoint for S3-compatible stores (MinIO, OVH).
        dry_run: Report decisions without executing them.
        poll_interval_seconds: Interval between periodic reconciliations.
    """

    bucket_name: str
    local_root: Path | None
    region: str = DEFAULT_REGION
    access_key_id: str | None = None
    secret_access_key: str | None = None
    endpoint_url: str | None = None
    dry_run: bool = False
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        """Normalize the local root path."""
        if self.local_root is not None:
            self.local_root = Path(self.local_root).expanduser()

    @classmethod
    def from_env(cls, env_file: Path | str | None = None) -> SyncConfig:
        """Build a configuration from environment variables.

        Args:
            env_file: Optional .env file to load first. Defaults to a
                ``.env`` found from the working directory.

        Returns:
            SyncConfig populated from the environment.

        Raises:
            ConfigError: If POLL_INTERVAL_SECONDS is not a number.
        """
        load_dotenv(env_file)

        interval_raw = os.environ.get("POLL_INTERVAL_SECONDS")
        try:
            interval = float(interval_raw) if interval_raw else DEFAULT_POLL_INTERVAL
        except ValueError as e:
            raise ConfigError(f"Invalid POLL_INTERVAL_SECONDS: {interval_raw!r}") from e

        return cls(
            bucket_name=os.environ.get("BUCKET_NAME", ""),
            local_root=os.environ.get("LOCAL_FOLDER_PATH") or None,
            region=os.environ.get("AWS_REGION") or DEFAULT_REGION,
            access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
            secret_access_key=(
                os.environ.get("AWS_ACCESS_KEY_SECRET")
                or os.environ.get("AWS_SECRET_ACCESS_KEY")
            ),
            endpoint_url=os.environ.get("S3_ENDPOINT_URL"),
            dry_run=_parse_bool(os.environ.get("DRY_RUN")),
            poll_interval_seconds=interval,
        )

    def with_overrides(self, **overrides: object) -> SyncConfig:
        """Return a copy with non-None overrides applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)

    def validate(self) -> None:
        """Check that the configuration can drive a sync.

        Raises:
            ConfigError: If the bucket or root is missing, the root is not a
                directory, or the poll interval is not positive.
        """
        if not self.bucket_name:
            raise ConfigError("Bucket name is not configured (BUCKET_NAME)")
        if self.local_root is None:
            raise ConfigError("Local folder is not configured (LOCAL_FOLDER_PATH)")
        if not self.local_root.is_dir():
            raise ConfigError(f"Local folder does not exist: {self.local_root}")
        if self.poll_interval_seconds <= 0:
            raise ConfigError(
                f"Poll interval must be positive, got {self.poll_interval_seconds}"
            )
