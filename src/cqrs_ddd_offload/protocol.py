"""OffloadProtocol: provider-neutral send/receive/delete steps.

Send:    classify -> [encode -> digest -> upload -> reference] -> queue
Receive: sniff -> [download -> decode -> verify] -> deliver
Delete:  decode receipt handle -> [delete blob] -> queue delete

The protocol holds no per-message state; every call works on its own
locals, so one instance can serve concurrent tasks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .attributes import Attribute
from .codec import decode_message, encode_message
from .digest import MessageDigests, compute_digests
from .envelope import (
    BlobLocation,
    ErrorEnvelope,
    ReferenceEnvelope,
    is_error_envelope,
    is_reference_envelope,
)
from .exceptions import DecodingError, OffloadError, UpstreamStoreError
from .receipt import CompositeReceiptHandle

if TYPE_CHECKING:
    from .attributes import Message
    from .config import OffloadSettings
    from .envelope import Destination
    from .ports import IBlobStore
    from .sizing import SizeDecision

logger = logging.getLogger(__name__)

CLIENT_VERSION_ATTRIBUTE = "offload-client-version"
CLIENT_VERSION = "v1"


def version_tag() -> dict[str, Attribute]:
    """Attributes sent alongside a reference in place of the originals."""
    return {CLIENT_VERSION_ATTRIBUTE: Attribute.string(CLIENT_VERSION)}


class BodyKind(Enum):
    """What a received body holds, decided by a prefix test alone."""

    PLAIN = "plain"
    REFERENCE = "reference"
    ERROR = "error"


def sniff(body: str | None) -> BodyKind:
    if body is None:
        return BodyKind.PLAIN
    if is_reference_envelope(body):
        return BodyKind.REFERENCE
    if is_error_envelope(body):
        return BodyKind.ERROR
    return BodyKind.PLAIN


@dataclass(frozen=True)
class OffloadResult:
    """An uploaded payload and the reference that replaces it in the queue."""

    reference: ReferenceEnvelope
    digests: MessageDigests
    size: int

    @property
    def body(self) -> str:
        return self.reference.to_json()


class RetrievalStatus(Enum):
    PLAIN = "plain"
    RECONSTRUCTED = "reconstructed"
    FAILED = "failed"


@dataclass(frozen=True)
class Retrieval:
    """Outcome of reconstructing one received body."""

    status: RetrievalStatus
    message: Message | None = None
    reference: ReferenceEnvelope | None = None
    error: OffloadError | None = None

    def to_error_envelope(self) -> ErrorEnvelope:
        reason = str(self.error) if self.error is not None else "payload unavailable"
        return ErrorEnvelope(error=reason, reference=self.reference)

    def receipt_handle(self, inner_handle: str) -> str:
        """Composite handle when a reference was parsed, else *inner_handle*."""
        if self.reference is None:
            return inner_handle
        location = self.reference.location
        return CompositeReceiptHandle(
            inner_handle=inner_handle, bucket=location.bucket, key=location.key
        ).encode()


class OffloadProtocol:
    """Offload, retrieve and release payloads against an IBlobStore."""

    def __init__(self, store: IBlobStore, settings: OffloadSettings) -> None:
        self._store = store
        self._settings = settings
        self._policy = settings.size_policy()

    @property
    def settings(self) -> OffloadSettings:
        return self._settings

    @property
    def store(self) -> IBlobStore:
        return self._store

    def plan(self, message: Message) -> SizeDecision:
        """Classify *message*; raises MessageTooLargeError before any I/O."""
        decision = self._policy.classify(message)
        decision.raise_if_rejected()
        return decision

    async def offload(
        self, message: Message, destination: Destination
    ) -> OffloadResult:
        """Upload *message* and return the reference to send in its place.

        Nothing is uploaded if encoding fails; if the upload fails the
        caller must not submit anything to the queue.
        """
        encoded = encode_message(message)
        digests = compute_digests(encoded)
        bucket = self._settings.bucket
        key = destination.new_key()
        try:
            await self._store.put(bucket, key, encoded.data)
        except OffloadError:
            raise
        except Exception as e:
            raise UpstreamStoreError(f"blob put {bucket}/{key}", str(e)) from e
        reference = ReferenceEnvelope(
            location=BlobLocation(
                region=destination.region or self._settings.region_name,
                bucket=bucket,
                key=key,
            ),
            body_digest=digests.body,
            attributes_digest=digests.attributes,
        )
        logger.debug(
            f"Offloaded {len(encoded.data)} byte payload of {destination.name} "
            f"to {bucket}/{key}"
        )
        return OffloadResult(reference=reference, digests=digests, size=message.size)

    async def retrieve(self, body: str | None) -> Retrieval:
        """Reconstruct the payload behind *body* if it is a reference.

        Failures are returned, never raised, so one bad message does not
        affect its siblings in a batch.
        """
        if body is None or sniff(body) is not BodyKind.REFERENCE:
            return Retrieval(status=RetrievalStatus.PLAIN)
        try:
            reference = ReferenceEnvelope.from_json(body)
        except DecodingError as e:
            return Retrieval(status=RetrievalStatus.FAILED, error=e)
        location = reference.location
        try:
            message = await self._download(location)
            self._verify(message, reference)
        except OffloadError as e:
            return Retrieval(
                status=RetrievalStatus.FAILED, reference=reference, error=e
            )
        logger.debug(
            f"Retrieved offloaded payload from {location.bucket}/{location.key}"
        )
        return Retrieval(
            status=RetrievalStatus.RECONSTRUCTED, message=message, reference=reference
        )

    async def _download(self, location: BlobLocation) -> Message:
        try:
            data = await self._store.get(location.bucket, location.key)
        except OffloadError:
            raise
        except Exception as e:
            raise UpstreamStoreError(
                f"blob get {location.bucket}/{location.key}", str(e)
            ) from e
        return decode_message(data)

    @staticmethod
    def _verify(message: Message, reference: ReferenceEnvelope) -> None:
        digests = compute_digests(encode_message(message))
        if (digests.body, digests.attributes) != (
            reference.body_digest,
            reference.attributes_digest,
        ):
            raise DecodingError(
                "digest mismatch",
                f"{reference.location.bucket}/{reference.location.key}",
            )

    async def release(self, receipt_handle: str) -> str:
        """Delete the blob behind a composite handle; return the queue handle.

        Ordinary handles are returned unchanged. A failed blob delete raises
        before the caller deletes the queue entry.
        """
        composite = CompositeReceiptHandle.decode(receipt_handle)
        if composite is None:
            return receipt_handle
        try:
            await self._store.delete(composite.bucket, composite.key)
        except OffloadError:
            raise
        except Exception as e:
            raise UpstreamStoreError(
                f"blob delete {composite.bucket}/{composite.key}", str(e)
            ) from e
        logger.debug(f"Released offloaded payload {composite.bucket}/{composite.key}")
        return composite.inner_handle
