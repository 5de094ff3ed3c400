"""Object storage abstraction for the remote side of a sync.

This module provides:
- Abstract interface for bucket storage (put/get/delete/list)
- LocalDirectoryObjectStore for development/testing
- S3ObjectStore for production (AWS, MinIO, OVH)
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class ObjectNotFoundError(Exception):
    """Raised when an object is not found in storage."""


@dataclass(frozen=True)
class RemoteObject:
    """One entry of a bucket listing.

    Attributes:
        key: Object key (forward-slash separated).
        etag: Raw ETag as returned by the store, quotes included.
        last_modified: Timezone-aware modification time.
        size: Object size in bytes.
    """

    key: str
    etag: str
    last_modified: datetime
    size: int = 0


class ObjectStore(ABC):
    """Abstract interface for a single bucket."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of where objects are stored."""

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """Store an object.

        Args:
            key: Object key.
            data: Object content.
        """

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Retrieve an object.

        Args:
            key: Object key.

        Returns:
            Object content.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""

    @abstractmethod
    def list(self) -> list[RemoteObject]:
        """List every object in the bucket."""


class LocalDirectoryObjectStore(ObjectStore):
    """Directory-backed store for development and testing.

    Each key maps to a file below the base directory. ETags are the
    quoted MD5 of the content, as S3 reports for simple uploads.
    """

    def __init__(self, base_path: Path | str) -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory acting as the bucket.
        """
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local directory: {self._base_path}"

    def _object_path(self, key: str) -> Path:
        """Get the file path for a key, refusing keys that escape the base."""
        path = (self._base_path / key).resolve()
        if not path.is_relative_to(self._base_path):
            raise ValueError(f"Key escapes storage directory: {key}")
        return path

    def put(self, key: str, data: bytes) -> None:
        """Store an object."""
        path = self._object_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def get(self, key: str) -> bytes:
        """Retrieve an object."""
        path = self._object_path(key)
        if not path.is_file():
            raise ObjectNotFoundError(f"Object not found: {key}")
        return path.read_bytes()

    def delete(self, key: str) -> None:
        """Delete an object."""
        path = self._object_path(key)
        if path.is_file():
            path.unlink()

    def list(self) -> list[RemoteObject]:
        """List every stored object."""
        objects = []
        for path in sorted(self._base_path.rglob("*")):
            if not path.is_file():
                continue
            stat = path.stat()
            digest = hashlib.md5(path.read_bytes(), usedforsecurity=False).hexdigest()
            objects.append(
                RemoteObject(
                    key=path.relative_to(self._base_path).as_posix(),
                    etag=f'"{digest}"',
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                    size=stat.st_size,
                )
            )
        return objects


class S3ObjectStore(ObjectStore):
    """S3-compatible storage for production (AWS, MinIO, OVH, etc.)."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = "us-east-1",
    ) -> None:
        """Initialize S3 storage.

        Args:
            bucket: S3 bucket name.
            endpoint_url: Custom endpoint URL (for OVH, MinIO, etc.).
            access_key: AWS access key ID.
            secret_key: AWS secret access key.
            region: AWS region (default: us-east-1).
        """
        import boto3

        self._bucket = bucket
        self._endpoint_url = endpoint_url
        self._client: Any = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    @property
    def location(self) -> str:
        """Return the S3 bucket location."""
        if self._endpoint_url:
            return f"S3: {self._endpoint_url}/{self._bucket}"
        return f"S3: s3://{self._bucket}"

    def put(self, key: str, data: bytes) -> None:
        """Store an object."""
        self._client.put_object(Bucket=self._bucket, Key=key, Body=data)

    def get(self, key: str) -> bytes:
        """Retrieve an object."""
        from botocore.exceptions import ClientError

        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            body: bytes = response["Body"].read()
            return body
        except ClientError as e:
            if e.response["Error"]["Code"] in ("NoSuchKey", "404"):
                raise ObjectNotFoundError(f"Object not found: {key}") from e
            raise

    def delete(self, key: str) -> None:
        """Delete an object."""
        self._client.delete_object(Bucket=self._bucket, Key=key)

    def list(self) -> list[RemoteObject]:
        """List every object, following continuation tokens."""
        paginator = self._client.get_paginator("list_objects_v2")
        objects = []
        for page in paginator.paginate(Bucket=self._bucket):
            for item in page.get("Contents", []):
                # Zero-byte "folder" placeholders created by consoles
                if item["Key"].endswith("/"):
                    continue
                objects.append(
                    RemoteObject(
                        key=item["Key"],
                        etag=item.get("ETag", ""),
                        last_modified=item["LastModified"],
                        size=item.get("Size", 0),
                    )
                )
        return objects


def create_object_store(config: dict[str, str | None]) -> ObjectStore:
    """Factory function to create an object store from configuration.

    Args:
        config: Storage configuration dict with keys:
            - type: "local" or "s3"
            - For local: local_path
            - For S3: bucket, endpoint_url, access_key, secret_key, region

    Returns:
        Configured ObjectStore instance.

    Raises:
        ValueError: If storage type is unknown.
    """
    storage_type = config.get("type", "s3")

    if storage_type == "local":
        local_path = config.get("local_path")
        if not local_path:
            raise ValueError("Local storage requires 'local_path' configuration")
        return LocalDirectoryObjectStore(local_path)

    if storage_type == "s3":
        bucket = config.get("bucket")
        if not bucket:
            raise ValueError("S3 storage requires 'bucket' configuration")
        return S3ObjectStore(
            bucket=bucket,
            endpoint_url=config.get("endpoint_url"),
            access_key=config.get("access_key"),
            secret_key=config.get("secret_key"),
            region=config.get("region") or "us-east-1",
        )

    raise ValueError(f"Unknown storage type: {storage_type}")
