"""Large-payload offloading for SQS and SNS via S3 reference messages."""

from __future__ import annotations

from .attributes import (
    Attribute,
    Message,
    from_sns_attributes,
    from_sqs_attributes,
    message_size,
    to_sns_attributes,
    to_sqs_attributes,
)
from .codec import EncodedMessage, decode_message, encode_message
from .config import OffloadSettings
from .digest import MessageDigests, compute_digests, md5_digest
from .envelope import (
    ERROR_IDENTIFIER,
    REFERENCE_IDENTIFIER,
    BlobLocation,
    ErrorEnvelope,
    ReferenceEnvelope,
    is_error_envelope,
    is_reference_envelope,
)
from .exceptions import (
    BlobNotFoundError,
    BucketNotFoundError,
    DecodingError,
    EncodingError,
    HandleDecodingError,
    InfrastructureError,
    MessageTooLargeError,
    NotFoundError,
    OffloadError,
    ReferenceConstructionError,
    UnsupportedDataTypeError,
    UpstreamStoreError,
    ValidationError,
)
from .memory import InMemoryBlobStore
from .ports import IBlobStore
from .protocol import OffloadProtocol, Retrieval, RetrievalStatus
from .receipt import CompositeReceiptHandle
from .s3 import S3BlobStore
from .sizing import Route, SizeDecision, SizePolicy
from .sns import OffloadSNSClient
from .sqs import OffloadSQSClient

__all__ = [
    "ERROR_IDENTIFIER",
    "REFERENCE_IDENTIFIER",
    "Attribute",
    "BlobLocation",
    "BlobNotFoundError",
    "BucketNotFoundError",
    "CompositeReceiptHandle",
    "DecodingError",
    "EncodedMessage",
    "EncodingError",
    "ErrorEnvelope",
    "HandleDecodingError",
    "IBlobStore",
    "InMemoryBlobStore",
    "InfrastructureError",
    "Message",
    "MessageDigests",
    "MessageTooLargeError",
    "NotFoundError",
    "OffloadError",
    "OffloadProtocol",
    "OffloadSNSClient",
    "OffloadSQSClient",
    "OffloadSettings",
    "ReferenceConstructionError",
    "ReferenceEnvelope",
    "Retrieval",
    "RetrievalStatus",
    "Route",
    "S3BlobStore",
    "SizeDecision",
    "SizePolicy",
    "UnsupportedDataTypeError",
    "UpstreamStoreError",
    "ValidationError",
    "compute_digests",
    "decode_message",
    "encode_message",
    "from_sns_attributes",
    "from_sqs_attributes",
    "is_error_envelope",
    "is_reference_envelope",
    "md5_digest",
    "message_size",
    "to_sns_attributes",
    "to_sqs_attributes",
]
