"""Modify requests: attribute changes and the handling of the server's reply."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable

from ldapkit.ber import (
    ClassType,
    Packet,
    Tag,
    TagType,
    new_constructed,
    new_integer,
    new_sequence,
    new_string,
)
from ldapkit.errors import raise_for_result

APPLICATION_MODIFY_REQUEST = 6
APPLICATION_MODIFY_RESPONSE = 7

logger = logging.getLogger(__name__)


class ModifyOperation(IntEnum):
    """The kind of change applied to an attribute."""

    ADD = 0
    DELETE = 1
    REPLACE = 2
    INCREMENT = 3


@dataclass
class PartialAttribute:
    """An attribute type with the values a change refers to."""

    type: str
    vals: list = field(default_factory=list)

    def encode(self) -> Packet:
        """Return the PartialAttribute SEQUENCE."""
        sequence = new_sequence("PartialAttribute")
        sequence.append_child(new_string(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, self.type, "Type"
        ))
        values = new_constructed(ClassType.UNIVERSAL, Tag.SET, "AttributeValue")
        for value in self.vals:
            values.append_child(new_string(
                ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, value, "Vals"
            ))
        sequence.append_child(values)
        return sequence


@dataclass
class Change:
    """One change of a modify request."""

    operation: int
    modification: PartialAttribute

    def encode(self) -> Packet:
        """Return the change SEQUENCE: the operation and the partial attribute."""
        change = new_sequence("Change")
        change.append_child(new_integer(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.ENUMERATED,
            int(self.operation), "Operation",
        ))
        change.append_child(self.modification.encode())
        return change


@dataclass
class ModifyRequest:
    """A list of changes to make to one directory entry."""

    dn: str
    changes: list = field(default_factory=list)
    controls: list = field(default_factory=list)

    def _append(self, operation: ModifyOperation, attr_type: str, attr_vals: Iterable) -> None:
        self.changes.append(Change(operation, PartialAttribute(attr_type, list(attr_vals))))

    def add(self, attr_type: str, attr_vals: Iterable) -> None:
        """Queue adding the given values to the attribute."""
        self._append(ModifyOperation.ADD, attr_type, attr_vals)

    def delete(self, attr_type: str, attr_vals: Iterable) -> None:
        """Queue deleting the given values (all values if empty) of the attribute."""
        self._append(ModifyOperation.DELETE, attr_type, attr_vals)

    def replace(self, attr_type: str, attr_vals: Iterable) -> None:
        """Queue replacing the attribute's values with the given ones."""
        self._append(ModifyOperation.REPLACE, attr_type, attr_vals)

    def increment(self, attr_type: str, attr_val: str) -> None:
        """Queue incrementing the attribute by the given amount."""
        self._append(ModifyOperation.INCREMENT, attr_type, [attr_val])

    def encode(self) -> list:
        """Return the ModifyRequest packet, followed by the controls packet if any."""
        operation = new_constructed(
            ClassType.APPLICATION, APPLICATION_MODIFY_REQUEST, "Modify Request"
        )
        operation.append_child(new_string(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, self.dn, "DN"
        ))
        changes = new_sequence("Changes")
        for change in self.changes:
            changes.append_child(change.encode())
        operation.append_child(changes)

        parts = [operation]
        if self.controls:
            wrapper = new_constructed(ClassType.CONTEXT, 0, "Controls")
            for control in self.controls:
                wrapper.append_child(control)
            parts.append(wrapper)
        return parts


def check_modify_response(packet: Packet) -> list:
    """Check a modify response; raise LDAPError on failure, return response controls.

    A message that is not a ModifyResponse is logged and yields no controls.
    """
    operation = packet.children[1]
    if operation.tag != APPLICATION_MODIFY_RESPONSE:
        logger.warning("Unexpected Response: %d", operation.tag)
        return []
    raise_for_result(packet)
    if len(packet.children) == 3:
        return list(packet.children[2].children)
    return []