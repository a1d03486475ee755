"""Reference and error envelopes placed in the queue instead of a payload.

Both render as tab-indented JSON whose first field is a fixed
``identifier``, so a receiver can recognise them with a prefix test on the
raw body before attempting a parse.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import DecodingError, ReferenceConstructionError

REFERENCE_IDENTIFIER = "5e0d7c3a9f1b4e26b8a4c1d9f07e2a63"
ERROR_IDENTIFIER = "b58c8bae78504da3a2e32cceeb77d342"

_QUEUE_URL_TOKEN_COUNT = 5
_TOPIC_ARN_TOKEN_COUNT = 6

_EnvelopeT = TypeVar("_EnvelopeT", bound=BaseModel)


def _json_prefix(identifier: str) -> str:
    return f'{{\n\t"identifier": "{identifier}",'


_REFERENCE_PREFIX = _json_prefix(REFERENCE_IDENTIFIER)
_ERROR_PREFIX = _json_prefix(ERROR_IDENTIFIER)


def is_reference_envelope(text: str) -> bool:
    return text.startswith(_REFERENCE_PREFIX)


def is_error_envelope(text: str) -> bool:
    return text.startswith(_ERROR_PREFIX)


def _render(model: BaseModel) -> str:
    return json.dumps(model.model_dump(mode="json"), indent="\t", ensure_ascii=False)


def _parse(model: type[_EnvelopeT], text: str | bytes, kind: str) -> _EnvelopeT:
    try:
        return model.model_validate(json.loads(text))
    except (
        json.JSONDecodeError,
        UnicodeDecodeError,
        RecursionError,
        PydanticValidationError,
    ) as e:
        raise DecodingError(f"malformed {kind} envelope", str(e)) from e


class BlobLocation(BaseModel):
    """Where an offloaded payload lives."""

    model_config = ConfigDict(frozen=True)

    region: str
    bucket: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)


class ReferenceEnvelope(BaseModel):
    """Sent to the queue in place of an offloaded payload."""

    model_config = ConfigDict(frozen=True)

    identifier: str = REFERENCE_IDENTIFIER
    location: BlobLocation
    body_digest: str
    attributes_digest: str = ""

    @field_validator("identifier")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if value != REFERENCE_IDENTIFIER:
            raise ValueError("not a reference envelope identifier")
        return value

    def to_json(self) -> str:
        return _render(self)

    @classmethod
    def from_json(cls, text: str | bytes) -> ReferenceEnvelope:
        return _parse(cls, text, "reference")


class ErrorEnvelope(BaseModel):
    """Delivered in place of a payload that could not be reconstructed."""

    model_config = ConfigDict(frozen=True)

    identifier: str = ERROR_IDENTIFIER
    error: str
    reference: ReferenceEnvelope | None = None

    @field_validator("identifier")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if value != ERROR_IDENTIFIER:
            raise ValueError("not an error envelope identifier")
        return value

    @classmethod
    def for_exception(
        cls, exc: BaseException, reference: ReferenceEnvelope | None = None
    ) -> ErrorEnvelope:
        return cls(error=str(exc), reference=reference)

    def to_json(self) -> str:
        return _render(self)

    @classmethod
    def from_json(cls, text: str | bytes) -> ErrorEnvelope:
        return _parse(cls, text, "error")


@dataclass(frozen=True)
class Destination:
    """Queue or topic name (and region, when the address carries one)."""

    name: str
    region: str | None = None

    def new_key(self) -> str:
        """Return ``{name}/{uuid4}``, unique per send."""
        return f"{self.name}/{uuid.uuid4()}"


def parse_queue_url(queue_url: str | None) -> Destination:
    """Parse ``https://sqs.<region>.amazonaws.com/<account>/<queue>``."""
    if not queue_url:
        raise ReferenceConstructionError("queue URL is missing")
    tokens = queue_url.split("/")
    if len(tokens) != _QUEUE_URL_TOKEN_COUNT or not tokens[-1]:
        raise ReferenceConstructionError(
            f"expected {_QUEUE_URL_TOKEN_COUNT} tokens when splitting queue URL "
            f"{queue_url!r} by '/' but received {len(tokens)}"
        )
    host = tokens[2].split(":")[0].split(".")
    region = None
    if len(host) >= 3 and host[0] == "sqs":
        region = host[1]
    elif len(host) >= 3 and host[1] == "queue":
        region = host[0]
    return Destination(name=tokens[4], region=region)


def parse_topic_arn(topic_arn: str | None) -> Destination:
    """Parse ``arn:<partition>:sns:<region>:<account>:<topic>``."""
    if not topic_arn:
        raise ReferenceConstructionError("topic ARN is missing")
    tokens = topic_arn.split(":")
    if len(tokens) != _TOPIC_ARN_TOKEN_COUNT or not tokens[-1]:
        raise ReferenceConstructionError(
            f"expected {_TOPIC_ARN_TOKEN_COUNT} tokens when splitting topic ARN "
            f"{topic_arn!r} by ':' but received {len(tokens)}"
        )
    return Destination(name=tokens[5], region=tokens[3] or None)
