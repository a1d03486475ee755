"""Exception hierarchy for cqrs-ddd-offload."""

from __future__ import annotations


class OffloadError(Exception):
    """Root exception for the offload protocol."""


class ValidationError(OffloadError):
    """Raised when a message or its destination cannot be accepted."""


class MessageTooLargeError(ValidationError):
    """Raised when a message exceeds the absolute offload limit."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"message too large: {size} bytes exceeds the allowed "
            f"message size of {limit} bytes"
        )


class ReferenceConstructionError(ValidationError):
    """Raised when a queue URL or topic ARN cannot be turned into a blob key."""


class EncodingError(OffloadError):
    """Raised when a message cannot be serialized to the wire format."""


class UnsupportedDataTypeError(EncodingError, ValidationError):
    """Raised when an attribute data type is not String*, Number* or Binary*.

    Usage: The attribute model raises this on construction and the codec
    raises it on encode, so callers may catch either base class.
    """

    def __init__(self, data_type: str) -> None:
        self.data_type = data_type
        super().__init__(f"unexpected message attribute data type: {data_type!r}")


class DecodingError(OffloadError):
    """Raised when wire bytes or envelope text cannot be deserialized."""

    def __init__(self, reason: str, detail: str | None = None) -> None:
        self.reason = reason
        self.detail = detail
        msg = f"unable to decode message: {reason}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class HandleDecodingError(OffloadError):
    """Raised when a composite receipt handle carries the marker but is malformed."""


class NotFoundError(OffloadError):
    """Base class for missing blob-store resources."""


class BlobNotFoundError(NotFoundError):
    """Raised when a referenced blob is missing from the store."""

    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"blob s3://{bucket}/{key} not found")


class BucketNotFoundError(NotFoundError):
    """Raised when the configured bucket does not exist or is not accessible."""

    def __init__(self, bucket: str) -> None:
        self.bucket = bucket
        super().__init__(f"bucket {bucket} does not exist or is not accessible")


class InfrastructureError(OffloadError):
    """Base class for failures of the wrapped queue and blob services."""


class UpstreamStoreError(InfrastructureError):
    """Raised when a blob-store or queue RPC fails.

    The provider exception is chained as ``__cause__``.
    """

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {reason}")
