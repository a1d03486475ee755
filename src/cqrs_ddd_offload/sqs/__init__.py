"""Offloading wrapper for the aiobotocore SQS client."""

from __future__ import annotations

from .client import OffloadSQSClient

__all__ = [
    "OffloadSQSClient",
]
