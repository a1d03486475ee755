"""Unit tests for OffloadSQSClient with a mocked SQS client (no real AWS)."""

from __future__ import annotations

import copy
import logging
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from cqrs_ddd_offload.config import OffloadSettings
from cqrs_ddd_offload.envelope import (
    REFERENCE_IDENTIFIER,
    ErrorEnvelope,
    ReferenceEnvelope,
)
from cqrs_ddd_offload.exceptions import (
    BucketNotFoundError,
    MessageTooLargeError,
    ReferenceConstructionError,
    UpstreamStoreError,
)
from cqrs_ddd_offload.memory import InMemoryBlobStore
from cqrs_ddd_offload.protocol import OffloadProtocol
from cqrs_ddd_offload.receipt import CompositeReceiptHandle
from cqrs_ddd_offload.sqs import OffloadSQSClient
from cqrs_ddd_offload.utilities import error_envelope

BUCKET = "offload-bucket"
QUEUE_URL = "https://sqs.eu-west-1.amazonaws.com/123456789012/orders"

SAMPLE_ATTRIBUTES: dict[str, Any] = {
    "test": {"DataType": "String", "StringValue": "test"},
    "test2": {"DataType": "Number", "StringValue": "123"},
    "test3": {"DataType": "Binary", "BinaryValue": b"\x01\x02\x03"},
}


@pytest.fixture
def mock_sqs() -> MagicMock:
    client = MagicMock()
    client.send_message = AsyncMock(
        return_value={
            "MessageId": "m-1",
            "MD5OfMessageBody": "queue-body-md5",
            "MD5OfMessageAttributes": "queue-attributes-md5",
        }
    )
    client.receive_message = AsyncMock(return_value={"Messages": []})
    client.delete_message = AsyncMock(return_value={})
    client.change_message_visibility = AsyncMock(return_value={})
    client.get_queue_url = AsyncMock(return_value={"QueueUrl": QUEUE_URL})
    return client


def _client(
    mock_sqs: MagicMock, store: InMemoryBlobStore, **overrides: Any
) -> OffloadSQSClient:
    settings = OffloadSettings(bucket=BUCKET, **overrides)
    return OffloadSQSClient(mock_sqs, OffloadProtocol(store, settings))


@pytest.fixture
def sqs(mock_sqs: MagicMock, store: InMemoryBlobStore) -> OffloadSQSClient:
    return _client(mock_sqs, store, direct_limit=16, absolute_limit=1024)


def _received(body: str, handle: str = "rh-1", **extra: Any) -> dict[str, Any]:
    return {"MessageId": "m-1", "ReceiptHandle": handle, "Body": body, **extra}


async def _send_offloaded(
    sqs: OffloadSQSClient, mock_sqs: MagicMock, body: str
) -> dict[str, Any]:
    await sqs.send_message(
        QueueUrl=QUEUE_URL, MessageBody=body, MessageAttributes=SAMPLE_ATTRIBUTES
    )
    return dict(mock_sqs.send_message.call_args.kwargs)


@pytest.mark.asyncio
async def test_create_checks_bucket(mock_sqs: MagicMock) -> None:
    store = InMemoryBlobStore()
    with pytest.raises(BucketNotFoundError):
        await OffloadSQSClient.create(mock_sqs, store, OffloadSettings(bucket=BUCKET))
    store.create_bucket(BUCKET)
    client = await OffloadSQSClient.create(
        mock_sqs, store, OffloadSettings(bucket=BUCKET)
    )
    assert client.protocol.settings.bucket == BUCKET


@pytest.mark.asyncio
async def test_other_operations_are_delegated(sqs: OffloadSQSClient) -> None:
    out = await sqs.get_queue_url(QueueName="orders")
    assert out == {"QueueUrl": QUEUE_URL}


@pytest.mark.asyncio
async def test_send_direct_passes_through(
    sqs: OffloadSQSClient, mock_sqs: MagicMock, store: InMemoryBlobStore
) -> None:
    out = await sqs.send_message(QueueUrl=QUEUE_URL, MessageBody="small")
    mock_sqs.send_message.assert_awaited_once_with(
        QueueUrl=QUEUE_URL, MessageBody="small"
    )
    assert out["MD5OfMessageBody"] == "queue-body-md5"
    assert store.keys() == []


@pytest.mark.asyncio
async def test_send_empty_body_passes_through(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    await sqs.send_message(QueueUrl=QUEUE_URL, MessageBody="")
    mock_sqs.send_message.assert_awaited_once_with(QueueUrl=QUEUE_URL, MessageBody="")


@pytest.mark.asyncio
async def test_send_offloads_large_message(
    sqs: OffloadSQSClient, mock_sqs: MagicMock, store: InMemoryBlobStore
) -> None:
    params = {
        "QueueUrl": QUEUE_URL,
        "MessageBody": "x" * 100,
        "MessageAttributes": copy.deepcopy(SAMPLE_ATTRIBUTES),
        "DelaySeconds": 5,
    }
    original = copy.deepcopy(params)
    out = await sqs.send_message(**params)
    assert params == original

    sent = mock_sqs.send_message.call_args.kwargs
    assert sent["QueueUrl"] == QUEUE_URL
    assert sent["DelaySeconds"] == 5
    assert sent["MessageAttributes"] == {
        "offload-client-version": {"DataType": "String", "StringValue": "v1"}
    }
    reference = ReferenceEnvelope.from_json(sent["MessageBody"])
    assert reference.location.bucket == BUCKET
    assert reference.location.region == "eu-west-1"
    assert reference.location.key.startswith("orders/")
    assert store.keys(BUCKET) == [reference.location.key]

    assert out["MessageId"] == "m-1"
    assert out["MD5OfMessageBody"] == reference.body_digest
    assert out["MD5OfMessageAttributes"] == reference.attributes_digest


@pytest.mark.asyncio
async def test_send_always_offload_small_message(
    mock_sqs: MagicMock, store: InMemoryBlobStore
) -> None:
    sqs = _client(mock_sqs, store, always_offload=True)
    out = await sqs.send_message(
        QueueUrl=QUEUE_URL, MessageBody="test", MessageAttributes=SAMPLE_ATTRIBUTES
    )
    assert len(store.keys()) == 1
    assert out["MD5OfMessageBody"] == "098f6bcd4621d373cade4e832627b4f6"
    assert out["MD5OfMessageAttributes"] == "ae83a9fd2e99604a8073446145c4c523"


@pytest.mark.asyncio
async def test_send_offloaded_without_attributes_drops_attribute_digest(
    sqs: OffloadSQSClient,
) -> None:
    out = await sqs.send_message(QueueUrl=QUEUE_URL, MessageBody="y" * 100)
    assert "MD5OfMessageAttributes" not in out


@pytest.mark.asyncio
async def test_send_rejects_oversized_before_io(
    sqs: OffloadSQSClient, mock_sqs: MagicMock, store: InMemoryBlobStore
) -> None:
    with pytest.raises(MessageTooLargeError) as exc_info:
        await sqs.send_message(QueueUrl=QUEUE_URL, MessageBody="z" * 2000)
    assert exc_info.value.limit == 1024
    mock_sqs.send_message.assert_not_awaited()
    assert store.keys() == []


@pytest.mark.asyncio
async def test_send_bad_queue_url(
    sqs: OffloadSQSClient, mock_sqs: MagicMock, store: InMemoryBlobStore
) -> None:
    with pytest.raises(ReferenceConstructionError):
        await sqs.send_message(QueueUrl="orders", MessageBody="x" * 100)
    mock_sqs.send_message.assert_not_awaited()
    assert store.keys() == []


@pytest.mark.asyncio
async def test_upload_failure_sends_nothing(
    sqs: OffloadSQSClient,
    mock_sqs: MagicMock,
    store: InMemoryBlobStore,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(store, "put", AsyncMock(side_effect=OSError("denied")))
    with pytest.raises(UpstreamStoreError):
        await sqs.send_message(QueueUrl=QUEUE_URL, MessageBody="x" * 100)
    mock_sqs.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_failure_after_upload_logs_orphan(
    sqs: OffloadSQSClient,
    mock_sqs: MagicMock,
    store: InMemoryBlobStore,
    caplog: pytest.LogCaptureFixture,
) -> None:
    mock_sqs.send_message.side_effect = RuntimeError("throttled")
    with caplog.at_level(logging.WARNING, logger="cqrs_ddd_offload.sqs.client"):
        with pytest.raises(UpstreamStoreError, match="sqs.send_message") as exc_info:
            await sqs.send_message(QueueUrl=QUEUE_URL, MessageBody="x" * 100)
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    (key,) = store.keys()
    assert key in caplog.text
    assert "orphaned" in caplog.text


@pytest.mark.asyncio
async def test_receive_without_messages(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    mock_sqs.receive_message.return_value = {}
    assert await sqs.receive_message(QueueUrl=QUEUE_URL) == {}


@pytest.mark.asyncio
async def test_receive_plain_message_unchanged(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    plain = _received("hello", MD5OfBody="abc")
    mock_sqs.receive_message.return_value = {"Messages": [plain]}
    out = await sqs.receive_message(QueueUrl=QUEUE_URL, MaxNumberOfMessages=10)
    assert out["Messages"] == [plain]
    mock_sqs.receive_message.assert_awaited_once_with(
        QueueUrl=QUEUE_URL, MaxNumberOfMessages=10
    )


@pytest.mark.asyncio
async def test_receive_reconstructs_offloaded_message(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    body = "payload " * 20
    sent = await _send_offloaded(sqs, mock_sqs, body)
    reference = ReferenceEnvelope.from_json(sent["MessageBody"])
    mock_sqs.receive_message.return_value = {
        "Messages": [
            _received(
                sent["MessageBody"],
                MD5OfBody="envelope-md5",
                MessageAttributes=sent["MessageAttributes"],
                MD5OfMessageAttributes="tag-md5",
            )
        ]
    }
    out = await sqs.receive_message(
        QueueUrl=QUEUE_URL, MessageAttributeNames=["test"]
    )
    (msg,) = out["Messages"]
    assert msg["Body"] == body
    assert msg["MessageAttributes"] == SAMPLE_ATTRIBUTES
    assert msg["MD5OfBody"] == reference.body_digest
    assert msg["MD5OfMessageAttributes"] == reference.attributes_digest
    assert msg["MessageId"] == "m-1"
    composite = CompositeReceiptHandle.decode(msg["ReceiptHandle"])
    assert composite is not None
    assert composite.inner_handle == "rh-1"
    assert composite.key == reference.location.key


@pytest.mark.asyncio
async def test_receive_restores_message_without_attributes(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    await sqs.send_message(QueueUrl=QUEUE_URL, MessageBody="q" * 100)
    sent = mock_sqs.send_message.call_args.kwargs
    mock_sqs.receive_message.return_value = {
        "Messages": [
            _received(
                sent["MessageBody"],
                MessageAttributes=sent["MessageAttributes"],
                MD5OfMessageAttributes="tag-md5",
            )
        ]
    }
    (msg,) = (await sqs.receive_message(QueueUrl=QUEUE_URL))["Messages"]
    assert msg["Body"] == "q" * 100
    assert "MessageAttributes" not in msg
    assert "MD5OfMessageAttributes" not in msg


@pytest.mark.asyncio
async def test_receive_failure_does_not_affect_siblings(
    sqs: OffloadSQSClient,
    mock_sqs: MagicMock,
    store: InMemoryBlobStore,
    caplog: pytest.LogCaptureFixture,
) -> None:
    lost = await _send_offloaded(sqs, mock_sqs, "a" * 100)
    kept = await _send_offloaded(sqs, mock_sqs, "b" * 100)
    lost_key = ReferenceEnvelope.from_json(lost["MessageBody"]).location.key
    await store.delete(BUCKET, lost_key)
    mock_sqs.receive_message.return_value = {
        "Messages": [
            _received(lost["MessageBody"], handle="rh-lost"),
            _received("plain", handle="rh-plain"),
            _received(kept["MessageBody"], handle="rh-kept"),
        ]
    }
    with caplog.at_level(logging.WARNING, logger="cqrs_ddd_offload.sqs.client"):
        out = await sqs.receive_message(QueueUrl=QUEUE_URL)
    failed, plain, restored = out["Messages"]

    envelope = error_envelope(failed["Body"])
    assert envelope is not None
    assert "not found" in envelope.error
    assert envelope.reference is not None
    assert envelope.reference.location.key == lost_key
    composite = CompositeReceiptHandle.decode(failed["ReceiptHandle"])
    assert composite is not None
    assert composite.key == lost_key
    assert "Unable to reconstruct" in caplog.text

    assert plain["Body"] == "plain"
    assert plain["ReceiptHandle"] == "rh-plain"
    assert restored["Body"] == "b" * 100


@pytest.mark.asyncio
async def test_receive_deeply_nested_reference_does_not_affect_siblings(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    nested = '{\n\t"identifier": "' + REFERENCE_IDENTIFIER + '",\n\t"location": '
    mock_sqs.receive_message.return_value = {
        "Messages": [
            _received(nested + "[" * 200_000, handle="rh-nested"),
            _received("plain", handle="rh-plain"),
        ]
    }
    failed, plain = (await sqs.receive_message(QueueUrl=QUEUE_URL))["Messages"]
    envelope = error_envelope(failed["Body"])
    assert envelope is not None
    assert "malformed reference envelope" in envelope.error
    assert envelope.reference is None
    assert failed["ReceiptHandle"] == "rh-nested"
    assert plain["Body"] == "plain"


@pytest.mark.asyncio
async def test_receive_malformed_reference_keeps_plain_handle(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    sent = await _send_offloaded(sqs, mock_sqs, "c" * 100)
    broken = sent["MessageBody"].replace('"location"', '"somewhere"')
    mock_sqs.receive_message.return_value = {"Messages": [_received(broken)]}
    (msg,) = (await sqs.receive_message(QueueUrl=QUEUE_URL))["Messages"]
    envelope = ErrorEnvelope.from_json(msg["Body"])
    assert envelope.reference is None
    assert msg["ReceiptHandle"] == "rh-1"


@pytest.mark.asyncio
async def test_delete_removes_blob_before_queue_entry(
    sqs: OffloadSQSClient, mock_sqs: MagicMock, store: InMemoryBlobStore
) -> None:
    sent = await _send_offloaded(sqs, mock_sqs, "d" * 100)
    mock_sqs.receive_message.return_value = {
        "Messages": [_received(sent["MessageBody"])]
    }
    (msg,) = (await sqs.receive_message(QueueUrl=QUEUE_URL))["Messages"]

    blobs_at_queue_delete: list[list[str]] = []

    async def _delete(**params: Any) -> dict[str, Any]:
        blobs_at_queue_delete.append(store.keys())
        return {}

    mock_sqs.delete_message.side_effect = _delete
    await sqs.delete_message(QueueUrl=QUEUE_URL, ReceiptHandle=msg["ReceiptHandle"])
    mock_sqs.delete_message.assert_awaited_once_with(
        QueueUrl=QUEUE_URL, ReceiptHandle="rh-1"
    )
    assert blobs_at_queue_delete == [[]]


@pytest.mark.asyncio
async def test_delete_ordinary_handle(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    await sqs.delete_message(QueueUrl=QUEUE_URL, ReceiptHandle="AQEB-plain")
    mock_sqs.delete_message.assert_awaited_once_with(
        QueueUrl=QUEUE_URL, ReceiptHandle="AQEB-plain"
    )


@pytest.mark.asyncio
async def test_blob_delete_failure_aborts_queue_delete(
    sqs: OffloadSQSClient,
    mock_sqs: MagicMock,
    store: InMemoryBlobStore,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(store, "delete", AsyncMock(side_effect=OSError("denied")))
    handle = CompositeReceiptHandle(inner_handle="rh-1", bucket=BUCKET, key="k")
    with pytest.raises(UpstreamStoreError):
        await sqs.delete_message(QueueUrl=QUEUE_URL, ReceiptHandle=handle.encode())
    mock_sqs.delete_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_change_message_visibility_unwraps_handle(
    sqs: OffloadSQSClient, mock_sqs: MagicMock, store: InMemoryBlobStore
) -> None:
    await store.put(BUCKET, "orders/k", b"blob")
    handle = CompositeReceiptHandle(inner_handle="rh-1", bucket=BUCKET, key="orders/k")
    await sqs.change_message_visibility(
        QueueUrl=QUEUE_URL, ReceiptHandle=handle.encode(), VisibilityTimeout=30
    )
    mock_sqs.change_message_visibility.assert_awaited_once_with(
        QueueUrl=QUEUE_URL, ReceiptHandle="rh-1", VisibilityTimeout=30
    )
    assert store.keys() == ["orders/k"]


@pytest.mark.asyncio
async def test_round_trip_through_queue(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    body = "é" * 50
    sent = await _send_offloaded(sqs, mock_sqs, body)
    mock_sqs.receive_message.return_value = {
        "Messages": [_received(sent["MessageBody"])]
    }
    (msg,) = (await sqs.receive_message(QueueUrl=QUEUE_URL))["Messages"]
    assert msg["Body"] == body


@pytest.mark.asyncio
async def test_delete_message_batch_releases_composite_handles(
    sqs: OffloadSQSClient, mock_sqs: MagicMock, store: InMemoryBlobStore
) -> None:
    await store.put(BUCKET, "orders/k", b"blob")
    handle = CompositeReceiptHandle(inner_handle="rh-1", bucket=BUCKET, key="orders/k")
    mock_sqs.delete_message_batch = AsyncMock(
        return_value={"Successful": [{"Id": "a"}, {"Id": "b"}]}
    )
    out = await sqs.delete_message_batch(
        QueueUrl=QUEUE_URL,
        Entries=[
            {"Id": "a", "ReceiptHandle": handle.encode()},
            {"Id": "b", "ReceiptHandle": "AQEB-plain"},
        ],
    )
    mock_sqs.delete_message_batch.assert_awaited_once_with(
        QueueUrl=QUEUE_URL,
        Entries=[
            {"Id": "a", "ReceiptHandle": "rh-1"},
            {"Id": "b", "ReceiptHandle": "AQEB-plain"},
        ],
    )
    assert out == {"Successful": [{"Id": "a"}, {"Id": "b"}]}
    assert store.keys() == []


@pytest.mark.asyncio
async def test_delete_message_batch_skips_entries_whose_blob_delete_fails(
    sqs: OffloadSQSClient,
    mock_sqs: MagicMock,
    store: InMemoryBlobStore,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(store, "delete", AsyncMock(side_effect=OSError("denied")))
    handle = CompositeReceiptHandle(inner_handle="rh-1", bucket=BUCKET, key="k")
    mock_sqs.delete_message_batch = AsyncMock(
        return_value={"Successful": [{"Id": "b"}], "Failed": []}
    )
    out = await sqs.delete_message_batch(
        QueueUrl=QUEUE_URL,
        Entries=[
            {"Id": "a", "ReceiptHandle": handle.encode()},
            {"Id": "b", "ReceiptHandle": "AQEB-plain"},
        ],
    )
    mock_sqs.delete_message_batch.assert_awaited_once_with(
        QueueUrl=QUEUE_URL, Entries=[{"Id": "b", "ReceiptHandle": "AQEB-plain"}]
    )
    assert out["Successful"] == [{"Id": "b"}]
    (failed,) = out["Failed"]
    assert failed["Id"] == "a"
    assert failed["Code"] == "BlobDeleteFailed"
    assert failed["SenderFault"] is False


@pytest.mark.asyncio
async def test_delete_message_batch_all_blob_deletes_fail(
    sqs: OffloadSQSClient,
    mock_sqs: MagicMock,
    store: InMemoryBlobStore,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(store, "delete", AsyncMock(side_effect=OSError("denied")))
    handle = CompositeReceiptHandle(inner_handle="rh-1", bucket=BUCKET, key="k")
    mock_sqs.delete_message_batch = AsyncMock()
    out = await sqs.delete_message_batch(
        QueueUrl=QUEUE_URL, Entries=[{"Id": "a", "ReceiptHandle": handle.encode()}]
    )
    mock_sqs.delete_message_batch.assert_not_awaited()
    assert out["Successful"] == []
    assert [f["Id"] for f in out["Failed"]] == ["a"]


@pytest.mark.asyncio
async def test_change_message_visibility_batch_unwraps_handles(
    sqs: OffloadSQSClient, mock_sqs: MagicMock
) -> None:
    handle = CompositeReceiptHandle(inner_handle="rh-1", bucket=BUCKET, key="k")
    mock_sqs.change_message_visibility_batch = AsyncMock(return_value={})
    await sqs.change_message_visibility_batch(
        QueueUrl=QUEUE_URL,
        Entries=[
            {"Id": "a", "ReceiptHandle": handle.encode(), "VisibilityTimeout": 0},
            {"Id": "b", "ReceiptHandle": "AQEB-plain", "VisibilityTimeout": 0},
        ],
    )
    mock_sqs.change_message_visibility_batch.assert_awaited_once_with(
        QueueUrl=QUEUE_URL,
        Entries=[
            {"Id": "a", "ReceiptHandle": "rh-1", "VisibilityTimeout": 0},
            {"Id": "b", "ReceiptHandle": "AQEB-plain", "VisibilityTimeout": 0},
        ],
    )
