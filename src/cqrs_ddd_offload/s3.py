"""S3BlobStore: IBlobStore backed by an aiobotocore S3 client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import BlobNotFoundError, UpstreamStoreError

if TYPE_CHECKING:
    from .connection import AWSConnectionManager

logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
_MISSING_BUCKET_CODES = frozenset({"NoSuchBucket", "404", "NotFound"})


def _error_code(exc: Exception) -> str | None:
    err = getattr(exc, "response", {}) or {}
    code = err.get("Error", {}).get("Code")
    return str(code) if code is not None else None


class S3BlobStore:
    """S3 adapter implementing IBlobStore.

    Objects are written and read whole; payloads are bounded by the
    absolute offload limit.
    """

    def __init__(self, connection: AWSConnectionManager) -> None:
        self._connection = connection

    async def _client(self) -> Any:
        return await self._connection.get_client("s3")

    async def put(self, bucket: str, key: str, data: bytes) -> None:
        client = await self._client()
        try:
            await client.put_object(Bucket=bucket, Key=key, Body=data)
        except Exception as e:
            raise UpstreamStoreError(
                f"s3.put_object {bucket}/{key}", str(e)
            ) from e
        logger.debug(f"Uploaded {len(data)} bytes to s3://{bucket}/{key}")

    async def get(self, bucket: str, key: str) -> bytes:
        client = await self._client()
        try:
            out = await client.get_object(Bucket=bucket, Key=key)
            async with out["Body"] as stream:
                data = await stream.read()
        except Exception as e:
            if _error_code(e) in _MISSING_OBJECT_CODES:
                raise BlobNotFoundError(bucket, key) from e
            raise UpstreamStoreError(f"s3.get_object {bucket}/{key}", str(e)) from e
        return bytes(data)

    async def delete(self, bucket: str, key: str) -> None:
        client = await self._client()
        try:
            await client.delete_object(Bucket=bucket, Key=key)
        except Exception as e:
            raise UpstreamStoreError(
                f"s3.delete_object {bucket}/{key}", str(e)
            ) from e
        logger.debug(f"Deleted s3://{bucket}/{key}")

    async def bucket_exists(self, bucket: str) -> bool:
        client = await self._client()
        try:
            await client.head_bucket(Bucket=bucket)
        except Exception as e:
            if _error_code(e) in _MISSING_BUCKET_CODES:
                return False
            raise UpstreamStoreError(f"s3.head_bucket {bucket}", str(e)) from e
        return True
