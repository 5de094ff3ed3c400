"""Content fingerprints for change detection.

Fingerprints are MD5 hex digests so that they compare equal to the ETag
S3 returns for objects stored with a single PUT. They are not used for
anything security-sensitive.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

from bucketsync.core.errors import FingerprintFailure

BLOCK_SIZE = 64 * 1024

_MD5_HEX = re.compile(r"^[0-9a-f]{32}$")


def compute_fingerprint(path: Path) -> str:
    """Compute the fingerprint of a file.

    Reads the file in blocks to handle large files efficiently.

    Args:
        path: Path to the file to hash.

    Returns:
        Hexadecimal MD5 digest.

    Raises:
        FingerprintFailure: If the file cannot be read.
    """
    hasher = hashlib.md5(usedforsecurity=False)
    try:
        with open(path, "rb") as f:
            for block in iter(lambda: f.read(BLOCK_SIZE), b""):
                hasher.update(block)
    except OSError as e:
        raise FingerprintFailure(f"Cannot fingerprint {path}: {e}") from e
    return hasher.hexdigest()


def fingerprint_bytes(data: bytes) -> str:
    """Compute the fingerprint of an in-memory payload."""
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def etag_to_fingerprint(etag: str | None) -> str | None:
    """Convert an object ETag into a fingerprint, if it is one.

    Surrounding quotes are stripped. ETags that are not a plain MD5
    (multipart uploads produce ``<hex>-<parts>``, SSE-KMS objects produce
    opaque values) return None, and the caller must hash the content.
    """
    if not etag:
        return None
    value = etag.strip().strip('"').lower()
    if _MD5_HEX.match(value):
        return value
    return None
