"""aiobotocore client management (optional extra: cqrs-ddd-offload[aws])."""

from __future__ import annotations

from typing import Any

from aiobotocore.session import AioSession

from .exceptions import UpstreamStoreError


class AWSConnectionManager:
    """Manages one shared aiobotocore client per AWS service."""

    def __init__(
        self,
        region_name: str = "us-east-1",
        *,
        session: AioSession | None = None,
        **client_kwargs: Any,
    ) -> None:
        """Configure region and optional session/client kwargs.

        Args:
            region_name: Region used for every client created here.
            session: Shared aiobotocore session; a new one by default.
            **client_kwargs: Forwarded to ``create_client`` (``endpoint_url``,
                credentials, ``config``, …).
        """
        self._region = region_name
        self._session = session or AioSession()
        self._client_kwargs = client_kwargs
        self._clients: dict[str, Any] = {}
        self._client_cms: dict[str, Any] = {}

    @property
    def region_name(self) -> str:
        return self._region

    async def get_client(self, service: str) -> Any:
        """Return the shared client for *service*; create if needed."""
        if service not in self._clients:
            client_cm = self._session.create_client(
                service,
                region_name=self._region,
                **self._client_kwargs,
            )
            self._clients[service] = await client_cm.__aenter__()
            self._client_cms[service] = client_cm
        return self._clients[service]

    async def get_queue_url(self, queue_name: str) -> str:
        """Resolve queue name to queue URL."""
        client = await self.get_client("sqs")
        try:
            out = await client.get_queue_url(QueueName=queue_name)
        except Exception as e:
            raise UpstreamStoreError("sqs.get_queue_url", str(e)) from e
        return str(out["QueueUrl"])

    async def close(self) -> None:
        """Close every open client."""
        for service in list(self._client_cms):
            client_cm = self._client_cms.pop(service)
            self._clients.pop(service, None)
            await client_cm.__aexit__(None, None, None)

    async def health_check(self) -> bool:
        """Return True if SQS answers a lightweight list call."""
        try:
            client = await self.get_client("sqs")
            await client.list_queues(MaxResults=1)
            return True
        except Exception:  # noqa: BLE001
            return False
