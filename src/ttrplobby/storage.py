"""Object storage for posters and avatars.

S3-compatible storage through boto3, with an in-memory client used when no
bucket is configured (local development and tests).
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Protocol

import boto3
from botocore.config import Config

from ttrplobby.settings import get_settings

logger = logging.getLogger(__name__)

POSTERS_PREFIX = "posters"
AVATARS_PREFIX = "avatars"

# Extensions kept from upload names; anything else falls back to jpg
EXTENSION_PATTERN = re.compile(r"[a-z0-9]{1,5}")

# Browser cache lifetime for uploaded images
CACHE_CONTROL = "max-age=3600"


class StorageClient(Protocol):
    """Operations the API needs from object storage."""

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None: ...

    def public_url(self, path: str) -> str: ...

    def list_prefix(self, prefix: str) -> list[str]: ...

    def delete(self, paths: list[str]) -> None: ...


def build_object_path(prefix: str, user_id: int, filename: str | None) -> str:
    """Build a per-user object key like ``posters/42/1712345678901.png``.

    Args:
        prefix: Top-level folder (posters or avatars)
        user_id: Owner of the object
        filename: Original upload name, used only for its extension
    """
    ext = "jpg"
    if filename and "." in filename:
        candidate = filename.rsplit(".", 1)[1].lower()
        if EXTENSION_PATTERN.fullmatch(candidate):
            ext = candidate
    return f"{prefix}/{user_id}/{int(time.time() * 1000)}.{ext}"


@dataclass
class InMemoryStorageClient:
    """Storage double that keeps objects in a dict."""

    base_url: str = "https://storage.example.test"
    objects: dict[str, bytes] = field(default_factory=dict)

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self.objects[path] = data

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def list_prefix(self, prefix: str) -> list[str]:
        return [p for p in self.objects if p.startswith(f"{prefix.rstrip('/')}/")]

    def delete(self, paths: list[str]) -> None:
        for path in paths:
            self.objects.pop(path, None)


@dataclass
class S3StorageClient:
    """S3-compatible storage client."""

    bucket: str
    region: str
    access_key_id: str
    secret_access_key: str
    endpoint: str | None = None
    public_base_url: str | None = None

    def __post_init__(self) -> None:
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=Config(signature_version="s3v4"),
        )

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
            CacheControl=CACHE_CONTROL,
        )

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{path}"

    def list_prefix(self, prefix: str) -> list[str]:
        paginator = self._client.get_paginator("list_objects_v2")
        keys: list[str] = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=f"{prefix.rstrip('/')}/"):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def delete(self, paths: list[str]) -> None:
        # DeleteObjects accepts at most 1000 keys per call
        for start in range(0, len(paths), 1000):
            chunk = paths[start : start + 1000]
            self._client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": p} for p in chunk], "Quiet": True},
            )


_storage_client: StorageClient | None = None


def get_storage_client() -> StorageClient:
    """Get the global storage client, creating it on first use."""
    global _storage_client
    if _storage_client is not None:
        return _storage_client

    settings = get_settings()
    if settings.s3_enabled:
        _storage_client = S3StorageClient(
            bucket=settings.aws_bucket,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            endpoint=settings.aws_endpoint_url or None,
            public_base_url=settings.storage_public_url or None,
        )
        logger.info(f"Using S3 storage bucket {settings.aws_bucket}")
    else:
        _storage_client = InMemoryStorageClient()
        logger.info("S3 not configured, using in-memory storage")
    return _storage_client


def reset_storage_client() -> None:
    """Reset the global storage client. Used for testing."""
    global _storage_client
    _storage_client = None
