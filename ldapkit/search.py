"""Search requests, result entries and the handling of search responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Mapping, Optional, Sequence

from ldapkit.ber import (
    ClassType,
    Packet,
    Tag,
    TagType,
    new_boolean,
    new_constructed,
    new_integer,
    new_sequence,
    new_string,
)
from ldapkit.errors import raise_for_result
from ldapkit.filter import compile_filter

APPLICATION_SEARCH_REQUEST = 3
APPLICATION_SEARCH_RESULT_ENTRY = 4
APPLICATION_SEARCH_RESULT_DONE = 5
APPLICATION_SEARCH_RESULT_REFERENCE = 19


class Scope(IntEnum):
    """How far below the base DN a search reaches."""

    BASE_OBJECT = 0
    SINGLE_LEVEL = 1
    WHOLE_SUBTREE = 2


class DerefAliases(IntEnum):
    """When the server dereferences aliases during a search."""

    NEVER = 0
    IN_SEARCHING = 1
    FINDING_BASE_OBJ = 2
    ALWAYS = 3


SCOPE_DESCRIPTIONS: dict[int, str] = {
    Scope.BASE_OBJECT: "Base Object",
    Scope.SINGLE_LEVEL: "Single Level",
    Scope.WHOLE_SUBTREE: "Whole Subtree",
}

DEREF_DESCRIPTIONS: dict[int, str] = {
    DerefAliases.NEVER: "NeverDerefAliases",
    DerefAliases.IN_SEARCHING: "DerefInSearching",
    DerefAliases.FINDING_BASE_OBJ: "DerefFindingBaseObj",
    DerefAliases.ALWAYS: "DerefAlways",
}


def _equal_fold(left: str, right: str) -> bool:
    return left.casefold() == right.casefold()


@dataclass
class EntryAttribute:
    """One attribute of an entry, with its values as text and as raw bytes."""

    name: str
    values: list = field(default_factory=list)
    byte_values: list = field(default_factory=list)

    @classmethod
    def from_strings(cls, name: str, values: Sequence[str]) -> "EntryAttribute":
        """Build an attribute whose raw values are the UTF-8 form of ``values``."""
        values = list(values)
        return cls(name, values, [value.encode("utf-8", "surrogateescape") for value in values])

    def format(self, indent: int = 0) -> str:
        """Return a one-line description, indented by ``indent`` spaces."""
        return f"{' ' * indent}{self.name}: [{' '.join(self.values)}]\n"

    def __str__(self) -> str:
        return self.format()


@dataclass
class Entry:
    """A single search result entry."""

    dn: str
    attributes: list = field(default_factory=list)

    def _find(self, attribute: str, fold: bool) -> Optional[EntryAttribute]:
        for attr in self.attributes:
            if (_equal_fold(attr.name, attribute) if fold else attr.name == attribute):
                return attr
        return None

    def get_attribute_values(self, attribute: str) -> list:
        """Return the values of the named attribute, or an empty list."""
        attr = self._find(attribute, fold=False)
        return attr.values if attr is not None else []

    def get_equal_fold_attribute_values(self, attribute: str) -> list:
        """Like get_attribute_values, matching the name case-insensitively."""
        attr = self._find(attribute, fold=True)
        return attr.values if attr is not None else []

    def get_raw_attribute_values(self, attribute: str) -> list:
        """Return the raw byte values of the named attribute, or an empty list."""
        attr = self._find(attribute, fold=False)
        return attr.byte_values if attr is not None else []

    def get_equal_fold_raw_attribute_values(self, attribute: str) -> list:
        """Like get_raw_attribute_values, matching the name case-insensitively."""
        attr = self._find(attribute, fold=True)
        return attr.byte_values if attr is not None else []

    def get_attribute_value(self, attribute: str) -> str:
        """Return the first value of the named attribute, or an empty string."""
        values = self.get_attribute_values(attribute)
        return values[0] if values else ""

    def get_equal_fold_attribute_value(self, attribute: str) -> str:
        """Like get_attribute_value, matching the name case-insensitively."""
        values = self.get_equal_fold_attribute_values(attribute)
        return values[0] if values else ""

    def get_raw_attribute_value(self, attribute: str) -> bytes:
        """Return the first raw value of the named attribute, or empty bytes."""
        values = self.get_raw_attribute_values(attribute)
        return values[0] if values else b""

    def get_equal_fold_raw_attribute_value(self, attribute: str) -> bytes:
        """Like get_raw_attribute_value, matching the name case-insensitively."""
        values = self.get_equal_fold_raw_attribute_values(attribute)
        return values[0] if values else b""

    def format(self, indent: int = 0) -> str:
        """Return an indented description; attributes go two spaces deeper."""
        lines = [f"{' ' * indent}DN: {self.dn}\n"]
        lines.extend(attr.format(indent + 2) for attr in self.attributes)
        return "".join(lines)

    def __str__(self) -> str:
        return f"DN: {self.dn}\n" + "".join(attr.format() for attr in self.attributes)

    @classmethod
    def from_packet(cls, packet: Packet) -> "Entry":
        """Build an entry from a SearchResultEntry operation packet."""
        dn = packet.children[0].value
        attributes = []
        for child in packet.children[1].children:
            values = child.children[1].children
            attributes.append(
                EntryAttribute(
                    name=child.children[0].value,
                    values=[value.value for value in values],
                    byte_values=[bytes(value.data) for value in values],
                )
            )
        return cls(dn, attributes)


def new_entry(dn: str, attributes: Mapping[str, Sequence[str]]) -> Entry:
    """Build an entry whose attributes are ordered by name, for stable output."""
    return Entry(
        dn,
        [EntryAttribute.from_strings(name, attributes[name]) for name in sorted(attributes)],
    )


@dataclass
class SearchResult:
    """Entries, referrals and controls gathered from a search's responses."""

    entries: list = field(default_factory=list)
    referrals: list = field(default_factory=list)
    controls: list = field(default_factory=list)

    def format(self, indent: int = 0) -> str:
        """Return the indented description of every entry."""
        return "".join(entry.format(indent) for entry in self.entries)

    def __str__(self) -> str:
        return "".join(str(entry) for entry in self.entries)

    def add_response(self, packet: Packet) -> bool:
        """Take in one response message; return True once the search is done.

        A failed SearchResultDone raises LDAPError. Response controls are kept
        as their BER packets.
        """
        operation = packet.children[1]
        if operation.tag == APPLICATION_SEARCH_RESULT_ENTRY:
            self.entries.append(Entry.from_packet(operation))
        elif operation.tag == APPLICATION_SEARCH_RESULT_REFERENCE:
            self.referrals.append(operation.children[0].value)
        elif operation.tag == APPLICATION_SEARCH_RESULT_DONE:
            raise_for_result(packet)
            if len(packet.children) == 3:
                self.controls.extend(packet.children[2].children)
            return True
        return False


@dataclass
class SearchRequest:
    """A search to send to the server."""

    base_dn: str
    scope: int = Scope.BASE_OBJECT
    deref_aliases: int = DerefAliases.NEVER
    size_limit: int = 0
    time_limit: int = 0
    types_only: bool = False
    filter: str = "(objectClass=*)"
    attributes: list = field(default_factory=list)
    controls: list = field(default_factory=list)

    def encode(self) -> list:
        """Return the SearchRequest packet, followed by the controls packet if any.

        Raises LDAPError if the filter does not compile.
        """
        operation = new_constructed(
            ClassType.APPLICATION, APPLICATION_SEARCH_REQUEST, "Search Request"
        )
        operation.append_child(new_string(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, self.base_dn, "Base DN"
        ))
        operation.append_child(new_integer(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.ENUMERATED, self.scope, "Scope"
        ))
        operation.append_child(new_integer(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.ENUMERATED,
            self.deref_aliases, "Deref Aliases",
        ))
        operation.append_child(new_integer(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.INTEGER, self.size_limit, "Size Limit"
        ))
        operation.append_child(new_integer(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.INTEGER, self.time_limit, "Time Limit"
        ))
        operation.append_child(new_boolean(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.BOOLEAN, self.types_only, "Types Only"
        ))
        operation.append_child(compile_filter(self.filter))
        attributes = new_sequence("Attributes")
        for attribute in self.attributes:
            attributes.append_child(new_string(
                ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, attribute, "Attribute"
            ))
        operation.append_child(attributes)

        parts = [operation]
        if self.controls:
            wrapper = new_constructed(ClassType.CONTEXT, 0, "Controls")
            for control in self.controls:
                wrapper.append_child(control)
            parts.append(wrapper)
        return parts