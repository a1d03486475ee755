"""In-memory blob store for tests and local development."""

from __future__ import annotations

import logging

from .exceptions import BlobNotFoundError

logger = logging.getLogger(__name__)


class InMemoryBlobStore:
    """
    Test double (Fake) implementing IBlobStore with a dict.
    """

    def __init__(self, buckets: set[str] | None = None) -> None:
        self._buckets: set[str] = set(buckets or ())
        self.objects: dict[tuple[str, str], bytes] = {}

    def create_bucket(self, bucket: str) -> None:
        self._buckets.add(bucket)

    async def put(self, bucket: str, key: str, data: bytes) -> None:
        self.objects[(bucket, key)] = bytes(data)
        logger.debug(f"Stored {len(data)} bytes at {bucket}/{key}")

    async def get(self, bucket: str, key: str) -> bytes:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise BlobNotFoundError(bucket, key) from None

    async def delete(self, bucket: str, key: str) -> None:
        self.objects.pop((bucket, key), None)

    async def bucket_exists(self, bucket: str) -> bool:
        return bucket in self._buckets

    def keys(self, bucket: str | None = None) -> list[str]:
        """Stored keys, optionally limited to one bucket (for test assertions)."""
        return [k for b, k in self.objects if bucket is None or b == bucket]

    def clear(self) -> None:
        """Drop all stored objects."""
        self.objects.clear()
