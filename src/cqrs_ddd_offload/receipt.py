"""Composite receipt handles carrying the blob location of an offloaded message."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from .exceptions import HandleDecodingError

RECEIPT_HANDLE_MARKER = "offload-message"
_SEPARATOR = "|"
_TOKEN_COUNT = 4


@dataclass(frozen=True)
class CompositeReceiptHandle:
    """Queue receipt handle plus the bucket and key of the offloaded blob.

    Handles without the marker belong to ordinary messages and are passed
    through to the queue untouched.
    """

    inner_handle: str
    bucket: str
    key: str

    def encode(self) -> str:
        raw = _SEPARATOR.join(
            (RECEIPT_HANDLE_MARKER, self.inner_handle, self.bucket, self.key)
        )
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    @classmethod
    def decode(cls, handle: str) -> CompositeReceiptHandle | None:
        """Return the composite handle, or ``None`` if *handle* is not ours."""
        try:
            decoded = base64.b64decode(handle, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return None
        if not decoded.startswith(RECEIPT_HANDLE_MARKER + _SEPARATOR):
            return None
        tokens = decoded.split(_SEPARATOR)
        if len(tokens) != _TOKEN_COUNT:
            raise HandleDecodingError(
                f"expected {_TOKEN_COUNT} tokens in composite receipt handle "
                f"but received {len(tokens)}"
            )
        _, inner_handle, bucket, key = tokens
        if not inner_handle or not bucket or not key:
            raise HandleDecodingError("composite receipt handle has an empty token")
        return cls(inner_handle=inner_handle, bucket=bucket, key=key)


def inner_receipt_handle(handle: str) -> str:
    """Return the queue's own handle for *handle*, composite or not."""
    composite = CompositeReceiptHandle.decode(handle)
    return composite.inner_handle if composite is not None else handle
