from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IBlobStore(Protocol):
    """
    Port for the object store holding offloaded payloads (S3, in-memory, …).

    Implementations raise :class:`~cqrs_ddd_offload.exceptions.BlobNotFoundError`
    from ``get`` when the object is missing and
    :class:`~cqrs_ddd_offload.exceptions.UpstreamStoreError` for any other
    provider failure.
    """

    async def put(self, bucket: str, key: str, data: bytes) -> None:
        """Store *data* under *bucket*/*key*, replacing any existing object."""
        ...

    async def get(self, bucket: str, key: str) -> bytes:
        """Return the full object stored under *bucket*/*key*."""
        ...

    async def delete(self, bucket: str, key: str) -> None:
        """
        Delete *bucket*/*key*.

        Deleting a missing object is not an error.
        """
        ...

    async def bucket_exists(self, bucket: str) -> bool:
        """Return True if *bucket* exists and is accessible."""
        ...
