"""Core module - Shared configuration and fingerprinting."""

from bucketsync.core.config import ConfigError, SyncConfig
from bucketsync.core.fingerprint import (
    compute_fingerprint,
    etag_to_fingerprint,
    fingerprint_bytes,
)

__all__ = [
    # Config
    "ConfigError",
    "SyncConfig",
    # Fingerprints
    "compute_fingerprint",
    "etag_to_fingerprint",
    "fingerprint_bytes",
]
