"""MD5 digests over the encoded body and attribute regions.

SQS reports ``MD5OfMessageBody`` over the raw body and
``MD5OfMessageAttributes`` over the name-sorted attribute records, which is
exactly what the codec writes after the body length prefix.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .codec import EncodedMessage


def md5_digest(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()  # noqa: S324


@dataclass(frozen=True)
class MessageDigests:
    body: str
    attributes: str = ""


def compute_digests(encoded: EncodedMessage) -> MessageDigests:
    """Hash the regions delimited by the codec's offsets.

    The attribute digest is ``""`` when the message carries no attributes.
    """
    body = md5_digest(encoded.data[encoded.body_start : encoded.body_end])
    attributes = ""
    if encoded.has_attributes:
        attributes = md5_digest(encoded.data[encoded.attributes_start :])
    return MessageDigests(body=body, attributes=attributes)
