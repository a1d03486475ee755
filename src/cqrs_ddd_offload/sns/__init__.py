"""Offloading wrapper for the aiobotocore SNS client."""

from __future__ import annotations

from .client import OffloadSNSClient

__all__ = [
    "OffloadSNSClient",
]
