import pytest

from ldapkit.ber import (
    ClassType,
    Packet,
    Tag,
    TagType,
    build_message,
    decode_packet,
    new_boolean,
    new_constructed,
    new_integer,
    new_sequence,
    new_string,
)

PPOLICY_OID = "1.3.6.1.4.1.42.2.27.8.5.1"
PASSWORD_EXPIRED_CONTROL = bytes(
    [0xA0, 0x24, 0x30, 0x22, 0x4, 0x19, 0x31, 0x2E, 0x33, 0x2E, 0x36, 0x2E, 0x31, 0x2E,
     0x34, 0x2E, 0x31, 0x2E, 0x34, 0x32, 0x2E, 0x32, 0x2E, 0x32, 0x37, 0x2E, 0x38, 0x2E,
     0x35, 0x2E, 0x31, 0x4, 0x5, 0x30, 0x3, 0x81, 0x1, 0x0]
)


def test_string_round_trip():
    packet = new_string(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, "hello", "s")
    decoded = decode_packet(packet.to_bytes())
    assert decoded.value == "hello"
    assert decoded.tag == Tag.OCTET_STRING
    assert decoded.class_type == ClassType.UNIVERSAL
    assert decoded.data == b"hello"


@pytest.mark.parametrize("value", [0, 1, 127, 128, 255, 256, -1, -128, -129, 2**40, -(2**40)])
def test_integer_round_trip(value):
    packet = new_integer(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.INTEGER, value, "i")
    assert decode_packet(packet.to_bytes()).value == value


def test_enumerated_round_trip():
    packet = new_integer(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.ENUMERATED, 2, "e")
    decoded = decode_packet(packet.to_bytes())
    assert decoded.value == 2
    assert decoded.tag == Tag.ENUMERATED


@pytest.mark.parametrize("value", [True, False])
def test_boolean_round_trip(value):
    packet = new_boolean(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.BOOLEAN, value, "b")
    assert packet.value is value
    assert decode_packet(packet.to_bytes()).value is value


def test_empty_sequence_bytes():
    assert new_sequence("empty").to_bytes() == b"\x30\x00"


def test_primitive_application_packet_without_content():
    packet = Packet(ClassType.APPLICATION, TagType.PRIMITIVE, 2)
    assert packet.to_bytes() == b"\x42\x00"


def test_nested_round_trip():
    outer = new_sequence("outer")
    inner = new_constructed(ClassType.APPLICATION, 3, "inner")
    inner.append_child(new_string(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, "dc=example,dc=com", "dn"))
    inner.append_child(new_integer(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.INTEGER, 42, "n"))
    outer.append_child(inner)
    outer.append_child(new_boolean(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.BOOLEAN, True, "flag"))

    decoded = decode_packet(outer.to_bytes())
    assert len(decoded.children) == 2
    assert decoded.children[0].class_type == ClassType.APPLICATION
    assert decoded.children[0].tag == 3
    assert [c.value for c in decoded.children[0].children] == ["dc=example,dc=com", 42]
    assert decoded.children[1].value is True
    assert decoded.to_bytes() == outer.to_bytes()


def test_long_form_length_round_trip():
    text = "x" * 300
    packet = new_string(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, text, "long")
    raw = packet.to_bytes()
    assert raw[1] & 0x80
    assert decode_packet(raw).value == text


def test_high_tag_number_round_trip():
    packet = new_string(ClassType.CONTEXT, TagType.PRIMITIVE, 40, "v", "high")
    decoded = decode_packet(packet.to_bytes())
    assert decoded.tag == 40
    assert decoded.class_type == ClassType.CONTEXT
    assert decoded.data == b"v"


def test_context_primitive_keeps_raw_data_only():
    packet = new_string(ClassType.CONTEXT, TagType.PRIMITIVE, 0, "abc", "ctx")
    decoded = decode_packet(packet.to_bytes())
    assert decoded.value is None
    assert decoded.decoded_string() == "abc"


def test_decode_control_bytes_round_trip():
    decoded = decode_packet(PASSWORD_EXPIRED_CONTROL)
    assert decoded.class_type == ClassType.CONTEXT
    assert decoded.tag_type == TagType.CONSTRUCTED
    control = decoded.children[0]
    assert control.children[0].value == PPOLICY_OID
    assert decoded.to_bytes() == PASSWORD_EXPIRED_CONTROL


def test_non_utf8_bytes_survive():
    packet = new_string(ClassType.CONTEXT, TagType.PRIMITIVE, 3, b"\xfc\xfe", "raw")
    assert packet.data == b"\xfc\xfe"
    assert packet.decoded_string().encode("utf-8", "surrogateescape") == b"\xfc\xfe"
    assert decode_packet(packet.to_bytes()).data == b"\xfc\xfe"


def test_truncated_data_raises():
    with pytest.raises(ValueError):
        decode_packet(PASSWORD_EXPIRED_CONTROL[:-1])


def test_empty_data_raises():
    with pytest.raises(ValueError):
        decode_packet(b"")


def test_trailing_data_raises():
    with pytest.raises(ValueError):
        decode_packet(new_sequence("s").to_bytes() + b"\x00")


def test_indefinite_length_raises():
    with pytest.raises(ValueError):
        decode_packet(b"\x30\x80\x00\x00")


def test_build_message():
    operation = new_constructed(ClassType.APPLICATION, 23, "op")
    message = build_message(7, operation)
    assert message.tag == Tag.SEQUENCE
    assert message.children[0].value == 7
    assert message.children[1] is operation
    decoded = decode_packet(message.to_bytes())
    assert decoded.children[0].value == 7
    assert decoded.children[1].tag == 23


def test_build_message_with_several_parts():
    operation = new_constructed(ClassType.APPLICATION, 6, "op")
    controls = new_constructed(ClassType.CONTEXT, 0, "controls")
    message = build_message(3, [operation, controls])
    assert message.children[1:] == [operation, controls]