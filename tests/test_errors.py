import pytest

from ldapkit.ber import (
    ClassType,
    Packet,
    Tag,
    TagType,
    decode_packet,
    new_constructed,
    new_integer,
    new_sequence,
    new_string,
)
from ldapkit.errors import (
    ERROR_FILTER_COMPILE,
    ERROR_NETWORK,
    ERROR_UNEXPECTED_RESPONSE,
    LDAP_RESULT_INVALID_CREDENTIALS,
    LDAPError,
    describe_result_code,
    get_ldap_error,
    is_error_any_of,
    is_error_with_code,
    raise_for_result,
)

APPLICATION_BIND_RESPONSE = 1


def _bind_response(code, matched_dn, diagnostic):
    response = new_constructed(ClassType.APPLICATION, APPLICATION_BIND_RESPONSE, "Bind Response")
    response.append_child(new_integer(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.INTEGER, code, "resultCode"))
    response.append_child(new_string(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, matched_dn, "matchedDN"))
    response.append_child(new_string(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, diagnostic, "diagnosticMessage"))
    packet = new_sequence("LDAPMessage")
    packet.append_child(new_integer(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.INTEGER, 0, "messageID"))
    packet.append_child(response)
    return packet


def test_nil_packet():
    assert is_error_with_code(get_ldap_error(None), ERROR_UNEXPECTED_RESPONSE)


def test_nil_result():
    packet = Packet(children=[Packet(), None])
    err = get_ldap_error(packet)
    assert is_error_with_code(err, ERROR_UNEXPECTED_RESPONSE)
    assert err.packet is packet


def test_get_ldap_error():
    diagnostic = "Detailed error message"
    packet = _bind_response(LDAP_RESULT_INVALID_CREDENTIALS, "dc=example,dc=org", diagnostic)
    err = get_ldap_error(packet)
    assert isinstance(err, LDAPError)
    assert err.result_code == LDAP_RESULT_INVALID_CREDENTIALS
    assert err.message == diagnostic
    assert err.matched_dn == "dc=example,dc=org"


def test_get_ldap_error_success():
    packet = _bind_response(0, "", "")
    assert get_ldap_error(packet) is None
    assert raise_for_result(packet) is None


def test_get_ldap_error_after_wire_round_trip():
    packet = _bind_response(LDAP_RESULT_INVALID_CREDENTIALS, "dc=example,dc=org", "Detailed error message")
    err = get_ldap_error(decode_packet(packet.to_bytes()))
    assert err.result_code == LDAP_RESULT_INVALID_CREDENTIALS
    assert err.message == "Detailed error message"


def test_raise_for_result():
    packet = _bind_response(LDAP_RESULT_INVALID_CREDENTIALS, "dc=example,dc=org", "Detailed error message")
    with pytest.raises(LDAPError) as info:
        raise_for_result(packet)
    assert info.value.result_code == LDAP_RESULT_INVALID_CREDENTIALS


def test_invalid_packet_format():
    packet = new_sequence("LDAPMessage")
    packet.append_child(new_integer(ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.INTEGER, 0, "messageID"))
    err = get_ldap_error(packet)
    assert err.result_code == ERROR_NETWORK
    assert err.message == "Invalid packet format"


def test_error_string():
    err = LDAPError(ERROR_FILTER_COMPILE, "ldap: missing characters for escape in filter")
    assert str(err) == (
        'LDAP Result Code 201 "Filter Compile Error": '
        "ldap: missing characters for escape in filter"
    )


def test_describe_result_code():
    assert describe_result_code(LDAP_RESULT_INVALID_CREDENTIALS) == "Invalid Credentials"
    assert describe_result_code(ERROR_NETWORK) == "Network Error"
    assert describe_result_code(9999) == ""


def test_is_error_any_of():
    err = LDAPError(ERROR_NETWORK, "ldap: response channel closed")
    assert is_error_any_of(err, ERROR_FILTER_COMPILE, ERROR_NETWORK)
    assert not is_error_any_of(err, ERROR_FILTER_COMPILE)
    assert not is_error_any_of(None, ERROR_NETWORK)
    assert not is_error_any_of(ValueError("x"), ERROR_NETWORK)