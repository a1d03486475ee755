"""Canonical binary encoding of a message body plus its attributes.

Layout (all lengths are unsigned 32-bit big-endian)::

    |length|body|length|name|length|data type|transport type|length|value|
    |4B    |    |4B    |    |4B    |         |1B            |4B    |     |
    |--- once ---|------------------ zero or more, sorted by name --------|

The same bytes are uploaded to the blob store and hashed for the digests,
so the layout must stay byte-for-byte stable.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .attributes import Attribute, Message, TransportType
from .exceptions import (
    DecodingError,
    EncodingError,
    UnsupportedDataTypeError,
    ValidationError,
)

_LENGTH = struct.Struct(">I")
LENGTH_SIZE = _LENGTH.size
TRANSPORT_TYPE_SIZE = 1
_MAX_FIELD_LENGTH = 0xFFFFFFFF


@dataclass(frozen=True)
class EncodedMessage:
    """Encoded bytes plus the offsets of the body and attribute regions."""

    data: bytes
    body_start: int
    body_end: int
    attributes_start: int

    @property
    def body_bytes(self) -> bytes:
        return self.data[self.body_start : self.body_end]

    @property
    def attribute_bytes(self) -> bytes:
        return self.data[self.attributes_start :]

    @property
    def has_attributes(self) -> bool:
        return self.attributes_start < len(self.data)


def _write_field(buf: bytearray, value: bytes) -> None:
    if len(value) > _MAX_FIELD_LENGTH:
        raise EncodingError(f"field of {len(value)} bytes does not fit a 4 byte length")
    buf += _LENGTH.pack(len(value))
    buf += value


def encode_attributes(buf: bytearray, attributes: dict[str, Attribute]) -> None:
    """Append attribute records to *buf*, sorted by name."""
    records = sorted(
        ((name.encode("utf-8"), attribute) for name, attribute in attributes.items()),
        key=lambda item: item[0],
    )
    for name, attribute in records:
        kind = attribute.transport_type
        _write_field(buf, name)
        _write_field(buf, attribute.data_type.encode("utf-8"))
        buf.append(kind.value)
        _write_field(buf, attribute.value_bytes)


def encode_message(message: Message) -> EncodedMessage:
    """Serialize *message*; the offsets let callers hash each region."""
    body = message.body.encode("utf-8")
    buf = bytearray()
    _write_field(buf, body)
    body_end = LENGTH_SIZE + len(body)
    encode_attributes(buf, message.attributes)
    return EncodedMessage(
        data=bytes(buf),
        body_start=LENGTH_SIZE,
        body_end=body_end,
        attributes_start=body_end,
    )


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    def read_field(self, reason: str) -> bytes:
        if self.remaining < LENGTH_SIZE:
            raise DecodingError(reason, f"missing length at offset {self.offset}")
        (length,) = _LENGTH.unpack_from(self._data, self.offset)
        self.offset += LENGTH_SIZE
        if self.remaining < length:
            raise DecodingError(
                reason, f"expected {length} bytes, {self.remaining} available"
            )
        value = bytes(self._data[self.offset : self.offset + length])
        self.offset += length
        return value

    def read_byte(self, reason: str) -> int:
        if self.remaining < TRANSPORT_TYPE_SIZE:
            raise DecodingError(reason, f"missing byte at offset {self.offset}")
        value = self._data[self.offset]
        self.offset += TRANSPORT_TYPE_SIZE
        return value


def _text(value: bytes, what: str) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodingError("invalid utf-8", what) from e


def _decode_attribute(reader: _Reader) -> tuple[str, Attribute]:
    name = _text(reader.read_field("short attribute field"), "attribute name")
    data_type = _text(reader.read_field("short attribute field"), "attribute data type")
    tag = reader.read_byte("short attribute field")
    value = reader.read_field("short attribute field")
    try:
        kind = TransportType(tag)
    except ValueError as e:
        raise DecodingError("unknown transport tag", f"{tag} for {name!r}") from e
    try:
        if kind is TransportType.STRING:
            text = _text(value, "attribute value")
            attribute = Attribute(data_type, string_value=text)
        else:
            attribute = Attribute(data_type, binary_value=value)
    except UnsupportedDataTypeError as e:
        raise DecodingError("unsupported data type", data_type) from e
    except ValidationError as e:
        raise DecodingError("transport tag mismatch", str(e)) from e
    return name, attribute


def decode_message(data: bytes) -> Message:
    """Inverse of :func:`encode_message`; every byte must belong to a record."""
    reader = _Reader(data)
    body = _text(reader.read_field("short body"), "body")
    attributes: dict[str, Attribute] = {}
    while reader.remaining > 0:
        name, attribute = _decode_attribute(reader)
        if name in attributes:
            raise DecodingError("duplicate attribute", name)
        attributes[name] = attribute
    return Message(body=body, attributes=attributes)
