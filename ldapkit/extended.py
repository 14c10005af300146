"""The "Who Am I?" extended operation and the unbind request."""

from __future__ import annotations

from dataclasses import dataclass

from ldapkit.ber import ClassType, Packet, TagType, new_constructed, new_string
from ldapkit.errors import ERROR_UNEXPECTED_RESPONSE, LDAPError, raise_for_result

APPLICATION_UNBIND_REQUEST = 2
APPLICATION_EXTENDED_REQUEST = 23
APPLICATION_EXTENDED_RESPONSE = 24
WHOAMI_OID = "1.3.6.1.4.1.4203.1.11.3"
_RESPONSE_VALUE_TAG = 11


@dataclass
class WhoAmIResult:
    """The authorization identity the server associates with the connection."""

    authz_id: str = ""


def whoami_request() -> Packet:
    """Return the ExtendedRequest packet for the "Who Am I?" operation."""
    request = new_constructed(
        ClassType.APPLICATION, APPLICATION_EXTENDED_REQUEST, "Who Am I? Extended Operation"
    )
    request.append_child(new_string(
        ClassType.CONTEXT, TagType.PRIMITIVE, 0, WHOAMI_OID,
        "Extended Request Name: Who Am I? OID",
    ))
    return request


def parse_whoami_response(packet: Packet) -> WhoAmIResult:
    """Read the authzId from an ExtendedResponse; raise LDAPError on failure."""
    operation = packet.children[1]
    if operation.tag != APPLICATION_EXTENDED_RESPONSE:
        raise LDAPError(ERROR_UNEXPECTED_RESPONSE, f"Unexpected Response: {operation.tag}")
    raise_for_result(packet)
    result = WhoAmIResult()
    for child in operation.children:
        if child.tag == _RESPONSE_VALUE_TAG:
            result.authz_id = child.decoded_string()
    return result


def unbind_request() -> Packet:
    """Return the UnbindRequest packet."""
    return Packet(
        ClassType.APPLICATION, TagType.PRIMITIVE, APPLICATION_UNBIND_REQUEST,
        description="Unbind Request",
    )