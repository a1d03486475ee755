"""OffloadSQSClient: SQS client wrapper that offloads oversized payloads."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ..attributes import Message, from_sqs_attributes, to_sqs_attributes
from ..digest import md5_digest
from ..envelope import parse_queue_url
from ..exceptions import BucketNotFoundError, UpstreamStoreError
from ..protocol import OffloadProtocol, RetrievalStatus, version_tag
from ..receipt import inner_receipt_handle
from ..sizing import Route

if TYPE_CHECKING:
    from ..config import OffloadSettings
    from ..ports import IBlobStore

logger = logging.getLogger(__name__)


class OffloadSQSClient:
    """Wraps an aiobotocore SQS client.

    ``send_message``, ``receive_message``, ``delete_message``,
    ``change_message_visibility`` and their ``*_batch`` delete and visibility
    forms take the same keyword arguments and return the same response shapes
    as the wrapped client; every other attribute is delegated to it unchanged.
    ``send_message_batch`` is delegated as is and never offloads.
    """

    def __init__(self, client: Any, protocol: OffloadProtocol) -> None:
        self._client = client
        self._protocol = protocol

    @classmethod
    async def create(
        cls, client: Any, store: IBlobStore, settings: OffloadSettings
    ) -> OffloadSQSClient:
        """Build the wrapper after checking that the bucket exists."""
        if not await store.bucket_exists(settings.bucket):
            raise BucketNotFoundError(settings.bucket)
        return cls(client, OffloadProtocol(store, settings))

    @property
    def protocol(self) -> OffloadProtocol:
        return self._protocol

    def __getattr__(self, name: str) -> Any:
        return getattr(self._client, name)

    async def _call(self, operation: str, **params: Any) -> dict[str, Any]:
        try:
            out = await getattr(self._client, operation)(**params)
        except Exception as e:
            raise UpstreamStoreError(f"sqs.{operation}", str(e)) from e
        return dict(out or {})

    async def send_message(self, **params: Any) -> dict[str, Any]:
        """Send directly, or upload the payload and send a reference.

        The caller's ``params`` are never modified. For offloaded messages the
        response digests are those of the original body and attributes.
        """
        body = params.get("MessageBody")
        if not body:
            return await self._call("send_message", **params)

        attributes = from_sqs_attributes(params.get("MessageAttributes"))
        message = Message(body, attributes or {})
        decision = self._protocol.plan(message)
        if decision.route is Route.DIRECT:
            return await self._call("send_message", **params)

        destination = parse_queue_url(params.get("QueueUrl"))
        result = await self._protocol.offload(message, destination)
        outgoing = {
            **params,
            "MessageBody": result.body,
            "MessageAttributes": to_sqs_attributes(version_tag()),
        }
        try:
            out = await self._call("send_message", **outgoing)
        except UpstreamStoreError:
            location = result.reference.location
            logger.warning(
                f"Queue send failed after upload; {location.bucket}/{location.key} "
                "is orphaned"
            )
            raise
        out["MD5OfMessageBody"] = result.digests.body
        if result.digests.attributes:
            out["MD5OfMessageAttributes"] = result.digests.attributes
        else:
            out.pop("MD5OfMessageAttributes", None)
        return out

    async def receive_message(self, **params: Any) -> dict[str, Any]:
        """Receive messages, reconstructing any that were offloaded.

        Reconstructed messages carry every original attribute, whatever
        ``MessageAttributeNames`` asked for. A message that cannot be
        reconstructed is delivered with an error envelope as its body.
        """
        out = await self._call("receive_message", **params)
        messages = out.get("Messages")
        if not messages:
            return out
        out["Messages"] = list(
            await asyncio.gather(*(self._restore(m) for m in messages))
        )
        return out

    async def _restore(self, msg: dict[str, Any]) -> dict[str, Any]:
        retrieval = await self._protocol.retrieve(msg.get("Body"))
        if retrieval.status is RetrievalStatus.PLAIN:
            return msg

        restored = dict(msg)
        if msg.get("ReceiptHandle"):
            restored["ReceiptHandle"] = retrieval.receipt_handle(msg["ReceiptHandle"])

        message, reference = retrieval.message, retrieval.reference
        if message is None or reference is None:
            logger.warning(
                f"Unable to reconstruct offloaded message {msg.get('MessageId')}: "
                f"{retrieval.error}"
            )
            restored["Body"] = retrieval.to_error_envelope().to_json()
            restored["MD5OfBody"] = md5_digest(restored["Body"].encode("utf-8"))
            return restored

        restored["Body"] = message.body
        restored["MD5OfBody"] = reference.body_digest
        if message.attributes:
            restored["MessageAttributes"] = to_sqs_attributes(message.attributes)
            restored["MD5OfMessageAttributes"] = reference.attributes_digest
        else:
            restored.pop("MessageAttributes", None)
            restored.pop("MD5OfMessageAttributes", None)
        return restored

    async def delete_message(self, **params: Any) -> dict[str, Any]:
        """Delete the offloaded blob (if any), then the queue entry."""
        handle = params.get("ReceiptHandle")
        if not handle:
            return await self._call("delete_message", **params)
        inner = await self._protocol.release(handle)
        return await self._call("delete_message", **{**params, "ReceiptHandle": inner})

    async def delete_message_batch(self, **params: Any) -> dict[str, Any]:
        """Batch form of :meth:`delete_message`.

        Entries whose blob cannot be deleted are not sent to the queue and are
        reported under ``Failed`` with code ``BlobDeleteFailed``.
        """
        entries = list(params.get("Entries") or [])
        released = await asyncio.gather(
            *(self._protocol.release(e["ReceiptHandle"]) for e in entries),
            return_exceptions=True,
        )
        outgoing: list[dict[str, Any]] = []
        failed: list[dict[str, Any]] = []
        for entry, inner in zip(entries, released):
            if isinstance(inner, BaseException):
                if not isinstance(inner, Exception):
                    raise inner
                logger.warning(
                    f"Not deleting batch entry {entry.get('Id')}: {inner}"
                )
                failed.append(
                    {
                        "Id": entry.get("Id"),
                        "SenderFault": False,
                        "Code": "BlobDeleteFailed",
                        "Message": str(inner),
                    }
                )
            else:
                outgoing.append({**entry, "ReceiptHandle": inner})
        if not outgoing:
            return {"Successful": [], "Failed": failed}
        out = await self._call(
            "delete_message_batch", **{**params, "Entries": outgoing}
        )
        if failed:
            out["Failed"] = [*out.get("Failed", []), *failed]
        return out

    async def change_message_visibility_batch(
        self, **params: Any
    ) -> dict[str, Any]:
        """Batch form of :meth:`change_message_visibility`."""
        entries = [
            {**e, "ReceiptHandle": inner_receipt_handle(e["ReceiptHandle"])}
            for e in params.get("Entries") or []
        ]
        return await self._call(
            "change_message_visibility_batch", **{**params, "Entries": entries}
        )

    async def change_message_visibility(self, **params: Any) -> dict[str, Any]:
        """Change visibility using the queue's own handle."""
        handle = params.get("ReceiptHandle")
        if handle:
            params = {**params, "ReceiptHandle": inner_receipt_handle(handle)}
        return await self._call("change_message_visibility", **params)
