import logging

import pytest

from ldapkit.ber import (
    ClassType,
    Tag,
    TagType,
    build_message,
    decode_packet,
    new_constructed,
    new_integer,
    new_sequence,
    new_string,
)
from ldapkit.errors import LDAP_RESULT_NO_SUCH_OBJECT, LDAPError
from ldapkit.modify import (
    APPLICATION_MODIFY_REQUEST,
    APPLICATION_MODIFY_RESPONSE,
    Change,
    ModifyOperation,
    ModifyRequest,
    PartialAttribute,
    check_modify_response,
)


def _response(tag, code, diagnostic="", controls=None):
    operation = new_constructed(ClassType.APPLICATION, tag, "Response")
    operation.append_child(new_integer(
        ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.ENUMERATED, code, "resultCode"))
    operation.append_child(new_string(
        ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, "", "matchedDN"))
    operation.append_child(new_string(
        ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, diagnostic, "diag"))
    message = new_sequence("LDAPMessage")
    message.append_child(new_integer(
        ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.INTEGER, 1, "messageID"))
    message.append_child(operation)
    if controls is not None:
        wrapper = new_constructed(ClassType.CONTEXT, 0, "Controls")
        for control in controls:
            wrapper.append_child(control)
        message.append_child(wrapper)
    return decode_packet(message.to_bytes())


def test_partial_attribute_round_trip():
    encoded = PartialAttribute("mail", ["a@example.com", "b@example.com"]).encode()
    decoded = decode_packet(encoded.to_bytes())
    assert decoded.tag == Tag.SEQUENCE
    assert decoded.children[0].value == "mail"
    assert decoded.children[1].tag == Tag.SET
    assert [v.value for v in decoded.children[1].children] == ["a@example.com", "b@example.com"]


def test_change_encodes_operation():
    change = Change(ModifyOperation.REPLACE, PartialAttribute("cn", ["x"]))
    decoded = decode_packet(change.encode().to_bytes())
    assert decoded.children[0].tag == Tag.ENUMERATED
    assert decoded.children[0].value == ModifyOperation.REPLACE
    assert decoded.children[1].children[0].value == "cn"


def test_request_methods_queue_changes_in_order():
    request = ModifyRequest("cn=a,dc=example,dc=com")
    request.add("mail", ["a@example.com"])
    request.delete("description", [])
    request.replace("sn", ["Smith"])
    request.increment("uidNumber", "1")
    assert [c.operation for c in request.changes] == [
        ModifyOperation.ADD,
        ModifyOperation.DELETE,
        ModifyOperation.REPLACE,
        ModifyOperation.INCREMENT,
    ]
    assert request.changes[3].modification == PartialAttribute("uidNumber", ["1"])


def test_request_encode_round_trip():
    request = ModifyRequest("cn=a,dc=example,dc=com")
    request.add("mail", ["a@example.com"])
    request.replace("sn", ["Smith", "Jones"])
    parts = request.encode()
    assert len(parts) == 1
    decoded = decode_packet(build_message(5, parts).to_bytes())
    operation = decoded.children[1]
    assert operation.class_type == ClassType.APPLICATION
    assert operation.tag == APPLICATION_MODIFY_REQUEST
    assert operation.children[0].value == "cn=a,dc=example,dc=com"
    changes = operation.children[1].children
    assert [c.children[0].value for c in changes] == [ModifyOperation.ADD, ModifyOperation.REPLACE]
    assert [v.value for v in changes[1].children[1].children[1].children] == ["Smith", "Jones"]


def test_request_encode_with_controls():
    control = new_sequence("Control")
    control.append_child(new_string(
        ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, "1.2.3", "Type"))
    parts = ModifyRequest("dc=example,dc=com", controls=[control]).encode()
    assert len(parts) == 2
    assert parts[1].class_type == ClassType.CONTEXT
    assert parts[1].children == [control]


def test_check_modify_response_success_without_controls():
    assert check_modify_response(_response(APPLICATION_MODIFY_RESPONSE, 0)) == []


def test_check_modify_response_returns_controls():
    control = new_sequence("Control")
    control.append_child(new_string(
        ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, "1.2.3", "Type"))
    controls = check_modify_response(
        _response(APPLICATION_MODIFY_RESPONSE, 0, controls=[control]))
    assert len(controls) == 1
    assert controls[0].children[0].value == "1.2.3"


def test_check_modify_response_raises_on_failure():
    with pytest.raises(LDAPError) as info:
        check_modify_response(
            _response(APPLICATION_MODIFY_RESPONSE, LDAP_RESULT_NO_SUCH_OBJECT, "gone"))
    assert info.value.result_code == LDAP_RESULT_NO_SUCH_OBJECT
    assert info.value.message == "gone"


def test_check_modify_response_logs_unexpected(caplog):
    with caplog.at_level(logging.WARNING, logger="ldapkit.modify"):
        result = check_modify_response(_response(APPLICATION_MODIFY_REQUEST, 0))
    assert result == []
    assert "Unexpected Response" in caplog.text