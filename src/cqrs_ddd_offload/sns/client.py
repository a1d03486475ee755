"""OffloadSNSClient: SNS client wrapper that offloads oversized payloads."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..attributes import Message, from_sns_attributes, to_sns_attributes
from ..envelope import parse_topic_arn
from ..exceptions import BucketNotFoundError, UpstreamStoreError, ValidationError
from ..protocol import OffloadProtocol, version_tag
from ..sizing import Route

if TYPE_CHECKING:
    from ..config import OffloadSettings
    from ..ports import IBlobStore

logger = logging.getLogger(__name__)


class OffloadSNSClient:
    """Wraps an aiobotocore SNS client.

    Offloaded notifications reach subscribed queues as reference envelopes;
    read them with :class:`~cqrs_ddd_offload.sqs.OffloadSQSClient`
    (the subscription must use raw message delivery).
    """

    def __init__(self, client: Any, protocol: OffloadProtocol) -> None:
        self._client = client
        self._protocol = protocol

    @classmethod
    async def create(
        cls, client: Any, store: IBlobStore, settings: OffloadSettings
    ) -> OffloadSNSClient:
        """Build the wrapper after checking that the bucket exists."""
        if not await store.bucket_exists(settings.bucket):
            raise BucketNotFoundError(settings.bucket)
        return cls(client, OffloadProtocol(store, settings))

    @property
    def protocol(self) -> OffloadProtocol:
        return self._protocol

    def __getattr__(self, name: str) -> Any:
        return getattr(self._client, name)

    async def _publish(self, **params: Any) -> dict[str, Any]:
        try:
            out = await self._client.publish(**params)
        except Exception as e:
            raise UpstreamStoreError("sns.publish", str(e)) from e
        return dict(out or {})

    async def publish(self, **params: Any) -> dict[str, Any]:
        """Publish directly, or upload the payload and publish a reference.

        The caller's ``params`` are never modified.
        """
        body = params.get("Message")
        if not body:
            return await self._publish(**params)

        attributes = from_sns_attributes(params.get("MessageAttributes"))
        message = Message(body, attributes or {})
        decision = self._protocol.plan(message)
        if decision.route is Route.DIRECT:
            return await self._publish(**params)

        if params.get("MessageStructure") == "json":
            raise ValidationError(
                "messages with MessageStructure='json' cannot be offloaded"
            )
        destination = parse_topic_arn(
            params.get("TopicArn") or params.get("TargetArn")
        )
        result = await self._protocol.offload(message, destination)
        outgoing = {
            **params,
            "Message": result.body,
            "MessageAttributes": to_sns_attributes(version_tag()),
        }
        try:
            return await self._publish(**outgoing)
        except UpstreamStoreError:
            location = result.reference.location
            logger.warning(
                f"Publish failed after upload; {location.bucket}/{location.key} "
                "is orphaned"
            )
            raise
