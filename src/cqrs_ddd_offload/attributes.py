"""Message and attribute value objects plus provider shape conversion.

SQS and SNS both describe message attributes as botocore dicts
(``{"DataType": ..., "StringValue": ...}`` / ``{"DataType": ..., "BinaryValue": ...}``).
Those shapes are treated as serialization boundaries only; :class:`Attribute`
is the single internal representation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any

from .exceptions import UnsupportedDataTypeError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping

STRING_TYPE_PREFIXES = ("String", "Number")
BINARY_TYPE_PREFIX = "Binary"

ProviderAttributes = dict[str, dict[str, Any]]
_LIST_FIELDS = frozenset({"StringListValues", "BinaryListValues"})


class TransportType(IntEnum):
    """How an attribute value is carried; the value is the wire tag."""

    STRING = 1
    BINARY = 2


def transport_type(data_type: str) -> TransportType:
    """Return the transport type selected by the *data_type* prefix."""
    if data_type.startswith(STRING_TYPE_PREFIXES):
        return TransportType.STRING
    if data_type.startswith(BINARY_TYPE_PREFIX):
        return TransportType.BINARY
    raise UnsupportedDataTypeError(data_type)


def _as_bytes(value: Any) -> bytes:
    """Coerce a binary value the way botocore does; ``str`` becomes UTF-8."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    raise ValidationError(
        f"binary attribute value must be bytes or str, not {type(value).__name__}"
    )


@dataclass(frozen=True)
class Attribute:
    """Typed message attribute.

    Exactly one of ``string_value`` / ``binary_value`` is set, chosen by the
    ``data_type`` prefix (``String``/``Number`` or ``Binary``). Custom type
    suffixes such as ``Number.float`` or ``Binary.gzip`` are allowed.
    """

    data_type: str
    string_value: str | None = None
    binary_value: bytes | None = None

    def __post_init__(self) -> None:
        kind = transport_type(self.data_type)
        if kind is TransportType.STRING:
            if self.string_value is None:
                raise ValidationError(
                    f"attribute of type {self.data_type!r} requires a string value"
                )
            if self.binary_value is not None:
                raise ValidationError(
                    f"attribute of type {self.data_type!r} cannot carry a binary value"
                )
        else:
            if self.binary_value is None:
                raise ValidationError(
                    f"attribute of type {self.data_type!r} requires a binary value"
                )
            if self.string_value is not None:
                raise ValidationError(
                    f"attribute of type {self.data_type!r} cannot carry a string value"
                )
            object.__setattr__(self, "binary_value", _as_bytes(self.binary_value))

    @classmethod
    def string(cls, value: str, data_type: str = "String") -> Attribute:
        return cls(data_type=data_type, string_value=value)

    @classmethod
    def number(cls, value: int | float | str, data_type: str = "Number") -> Attribute:
        return cls(data_type=data_type, string_value=str(value))

    @classmethod
    def binary(cls, value: bytes, data_type: str = "Binary") -> Attribute:
        return cls(data_type=data_type, binary_value=value)

    @property
    def transport_type(self) -> TransportType:
        return transport_type(self.data_type)

    @property
    def value_bytes(self) -> bytes:
        """The value as it is measured and carried on the wire."""
        if self.binary_value is not None:
            return self.binary_value
        return (self.string_value or "").encode("utf-8")

    @property
    def size(self) -> int:
        return len(self.data_type.encode("utf-8")) + len(self.value_bytes)


def message_size(body: str, attributes: Mapping[str, Attribute] | None = None) -> int:
    """Return ``len(body) + sum(len(name) + len(data_type) + len(value))`` in bytes."""
    size = len(body.encode("utf-8"))
    for name, attribute in (attributes or {}).items():
        size += len(name.encode("utf-8")) + attribute.size
    return size


@dataclass(frozen=True)
class Message:
    """A queue payload: body text plus named attributes."""

    body: str
    attributes: dict[str, Attribute] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", dict(self.attributes or {}))

    @property
    def size(self) -> int:
        return message_size(self.body, self.attributes)


def _from_provider(
    attributes: Mapping[str, Mapping[str, Any]] | None,
) -> dict[str, Attribute] | None:
    if attributes is None:
        return None
    out: dict[str, Attribute] = {}
    for name, value in attributes.items():
        string_value = value.get("StringValue")
        binary_value = value.get("BinaryValue")
        if string_value is None and binary_value is None and _LIST_FIELDS & set(value):
            raise ValidationError(
                f"attribute {name!r} carries only list values, which are not supported"
            )
        out[name] = Attribute(
            data_type=value.get("DataType", ""),
            string_value=string_value,
            binary_value=binary_value,
        )
    return out


def _to_provider(
    attributes: Mapping[str, Attribute] | None,
) -> ProviderAttributes | None:
    if attributes is None:
        return None
    out: ProviderAttributes = {}
    for name, attribute in attributes.items():
        shape: dict[str, Any] = {"DataType": attribute.data_type}
        if attribute.binary_value is not None:
            shape["BinaryValue"] = attribute.binary_value
        else:
            shape["StringValue"] = attribute.string_value
        out[name] = shape
    return out


def from_sqs_attributes(
    attributes: Mapping[str, Mapping[str, Any]] | None,
) -> dict[str, Attribute] | None:
    """Convert SQS ``MessageAttributes``.

    List-valued fields are not carried; an attribute with nothing but list
    values is a ValidationError.
    """
    return _from_provider(attributes)


def to_sqs_attributes(
    attributes: Mapping[str, Attribute] | None,
) -> ProviderAttributes | None:
    return _to_provider(attributes)


def from_sns_attributes(
    attributes: Mapping[str, Mapping[str, Any]] | None,
) -> dict[str, Attribute] | None:
    """Convert SNS ``MessageAttributes``."""
    return _from_provider(attributes)


def to_sns_attributes(
    attributes: Mapping[str, Attribute] | None,
) -> ProviderAttributes | None:
    return _to_provider(attributes)
