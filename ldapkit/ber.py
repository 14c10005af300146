"""Minimal BER encoding and decoding for LDAP messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, Union


class ClassType(IntEnum):
    """The class bits of a BER identifier octet."""

    UNIVERSAL = 0x00
    APPLICATION = 0x40
    CONTEXT = 0x80
    PRIVATE = 0xC0


class TagType(IntEnum):
    """The primitive/constructed bit of a BER identifier octet."""

    PRIMITIVE = 0x00
    CONSTRUCTED = 0x20


class Tag(IntEnum):
    """Universal tag numbers."""

    EOC = 0
    BOOLEAN = 1
    INTEGER = 2
    BIT_STRING = 3
    OCTET_STRING = 4
    NULL = 5
    OBJECT_IDENTIFIER = 6
    ENUMERATED = 10
    UTF8_STRING = 12
    SEQUENCE = 16
    SET = 17
    NUMERIC_STRING = 18
    PRINTABLE_STRING = 19
    T61_STRING = 20
    IA5_STRING = 22
    UTC_TIME = 23
    GENERALIZED_TIME = 24
    GENERAL_STRING = 27


_STRING_TAGS = frozenset(
    {
        Tag.OCTET_STRING,
        Tag.UTF8_STRING,
        Tag.NUMERIC_STRING,
        Tag.PRINTABLE_STRING,
        Tag.T61_STRING,
        Tag.IA5_STRING,
        Tag.UTC_TIME,
        Tag.GENERALIZED_TIME,
        Tag.GENERAL_STRING,
    }
)


def _to_text(data: bytes) -> str:
    return data.decode("utf-8", "surrogateescape")


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return bytes(value)


def _encode_int(value: int) -> bytes:
    length = 1
    while not -(1 << (8 * length - 1)) <= value < (1 << (8 * length - 1)):
        length += 1
    return value.to_bytes(length, "big", signed=True)


def _encode_identifier(class_type: int, tag_type: int, tag: int) -> bytes:
    if tag < 0x1F:
        return bytes([class_type | tag_type | tag])
    groups = [tag & 0x7F]
    tag >>= 7
    while tag:
        groups.append(0x80 | (tag & 0x7F))
        tag >>= 7
    return bytes([class_type | tag_type | 0x1F]) + bytes(reversed(groups))


def _encode_length(length: int) -> bytes:
    if length < 0x80:
        return bytes([length])
    raw = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(raw)]) + raw


@dataclass
class Packet:
    """A BER element: primitive content in ``data``, or a list of children."""

    class_type: int = ClassType.UNIVERSAL
    tag_type: int = TagType.PRIMITIVE
    tag: int = 0
    value: Any = None
    data: bytes = b""
    description: str = ""
    children: list = field(default_factory=list)

    def append_child(self, child: "Packet") -> None:
        """Add a child element to a constructed packet."""
        self.children.append(child)

    def decoded_string(self) -> str:
        """Return the raw content as text; undecodable bytes survive as surrogates."""
        return _to_text(self.data)

    def to_bytes(self) -> bytes:
        """Serialise the packet, including all children, to BER."""
        if self.tag_type == TagType.CONSTRUCTED:
            content = b"".join(child.to_bytes() for child in self.children)
        else:
            content = self.data
        return (
            _encode_identifier(int(self.class_type), int(self.tag_type), int(self.tag))
            + _encode_length(len(content))
            + content
        )


def new_string(class_type, tag_type, tag, value, description) -> Packet:
    """Create a primitive string packet from text or raw bytes."""
    data = _to_bytes(value)
    return Packet(class_type, tag_type, tag, _to_text(data), data, description)


def new_integer(class_type, tag_type, tag, value, description) -> Packet:
    """Create a primitive integer packet."""
    value = int(value)
    return Packet(class_type, tag_type, tag, value, _encode_int(value), description)


def new_boolean(class_type, tag_type, tag, value, description) -> Packet:
    """Create a primitive boolean packet."""
    value = bool(value)
    return Packet(class_type, tag_type, tag, value, _encode_int(int(value)), description)


def new_sequence(description) -> Packet:
    """Create an empty universal SEQUENCE."""
    return Packet(ClassType.UNIVERSAL, TagType.CONSTRUCTED, Tag.SEQUENCE, None, b"", description)


def new_constructed(class_type, tag, description) -> Packet:
    """Create an empty constructed packet of the given class and tag."""
    return Packet(class_type, TagType.CONSTRUCTED, tag, None, b"", description)


def _decode_value(class_type: int, tag: int, content: bytes) -> Any:
    if class_type != ClassType.UNIVERSAL:
        return None
    if tag == Tag.BOOLEAN:
        return any(content)
    if tag in (Tag.INTEGER, Tag.ENUMERATED):
        return int.from_bytes(content, "big", signed=True) if content else 0
    if tag in _STRING_TAGS:
        return _to_text(content)
    return None


def _read_packet(buf: bytes, pos: int, end: int) -> tuple[Packet, int]:
    if pos >= end:
        raise ValueError("unexpected end of BER data")
    first = buf[pos]
    pos += 1
    class_type = ClassType(first & 0xC0)
    tag_type = TagType(first & 0x20)
    tag = first & 0x1F
    if tag == 0x1F:
        tag = 0
        while True:
            if pos >= end:
                raise ValueError("unexpected end of BER data in tag")
            octet = buf[pos]
            pos += 1
            tag = (tag << 7) | (octet & 0x7F)
            if not octet & 0x80:
                break

    if pos >= end:
        raise ValueError("unexpected end of BER data in length")
    length = buf[pos]
    pos += 1
    if length == 0x80:
        raise ValueError("indefinite length is not supported")
    if length & 0x80:
        count = length & 0x7F
        if pos + count > end:
            raise ValueError("unexpected end of BER data in length")
        length = int.from_bytes(buf[pos:pos + count], "big")
        pos += count

    content_end = pos + length
    if content_end > end:
        raise ValueError("BER content is longer than the available data")

    if class_type == ClassType.UNIVERSAL and tag in Tag.__members__.values():
        tag = Tag(tag)
    packet = Packet(class_type, tag_type, tag)
    if tag_type == TagType.CONSTRUCTED:
        while pos < content_end:
            child, pos = _read_packet(buf, pos, content_end)
            packet.children.append(child)
    else:
        packet.data = buf[pos:content_end]
        packet.value = _decode_value(class_type, tag, packet.data)
    return packet, content_end


def decode_packet(data) -> Packet:
    """Decode exactly one BER element; raise ValueError on malformed input."""
    buf = bytes(data)
    packet, pos = _read_packet(buf, 0, len(buf))
    if pos != len(buf):
        raise ValueError("trailing data after BER element")
    return packet


def build_message(message_id, operation: Union[Packet, Iterable[Packet]]) -> Packet:
    """Wrap an operation (and any following packets, such as controls) in an LDAP envelope."""
    envelope = new_sequence("LDAP Request")
    envelope.append_child(
        new_integer(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.INTEGER, message_id, "MessageID")
    )
    parts = [operation] if isinstance(operation, Packet) else list(operation)
    for part in parts:
        envelope.append_child(part)
    return envelope