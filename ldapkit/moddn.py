"""Modify DN requests: renaming and moving entries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ldapkit.ber import (
    ClassType,
    Packet,
    Tag,
    TagType,
    new_boolean,
    new_constructed,
    new_string,
)
from ldapkit.errors import raise_for_result

APPLICATION_MODIFY_DN_REQUEST = 12
APPLICATION_MODIFY_DN_RESPONSE = 13

logger = logging.getLogger(__name__)


@dataclass
class ModifyDNRequest:
    """Rename an entry and, if ``new_superior`` is set, move it under a new parent.

    To move without renaming, ``new_rdn`` must be the first RDN of ``dn``.
    """

    dn: str
    new_rdn: str
    delete_old_rdn: bool
    new_superior: str = ""
    controls: list = field(default_factory=list)

    def encode(self) -> list:
        """Return the ModifyDNRequest packet, followed by the controls packet if any."""
        operation = new_constructed(
            ClassType.APPLICATION, APPLICATION_MODIFY_DN_REQUEST, "Modify DN Request"
        )
        operation.append_child(new_string(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, self.dn, "DN"
        ))
        operation.append_child(new_string(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, self.new_rdn, "New RDN"
        ))
        if self.delete_old_rdn:
            flag = new_string(
                ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.BOOLEAN, b"\xff", "Delete old RDN"
            )
            flag.value = True
        else:
            flag = new_boolean(
                ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.BOOLEAN, False, "Delete old RDN"
            )
        operation.append_child(flag)
        if self.new_superior:
            operation.append_child(new_string(
                ClassType.CONTEXT, TagType.PRIMITIVE, 0, self.new_superior, "New Superior"
            ))

        parts = [operation]
        if self.controls:
            wrapper = new_constructed(ClassType.CONTEXT, 0, "Controls")
            for control in self.controls:
                wrapper.append_child(control)
            parts.append(wrapper)
        return parts


def check_modify_dn_response(packet: Packet) -> None:
    """Raise LDAPError if a ModifyDNResponse reports failure; log other messages."""
    operation = packet.children[1]
    if operation.tag != APPLICATION_MODIFY_DN_RESPONSE:
        logger.warning("Unexpected Response: %d", operation.tag)
        return
    raise_for_result(packet)