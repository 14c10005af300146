"""Compile LDAP search filter strings to BER packets and back."""

from __future__ import annotations

from enum import IntEnum
from typing import Optional, Union

from ldapkit.ber import (
    ClassType,
    Packet,
    Tag,
    TagType,
    new_boolean,
    new_constructed,
    new_sequence,
    new_string,
)
from ldapkit.errors import ERROR_FILTER_COMPILE, ERROR_FILTER_DECOMPILE, LDAPError


class FilterChoice(IntEnum):
    """Context tags of the Filter CHOICE."""

    AND = 0
    OR = 1
    NOT = 2
    EQUALITY_MATCH = 3
    SUBSTRINGS = 4
    GREATER_OR_EQUAL = 5
    LESS_OR_EQUAL = 6
    PRESENT = 7
    APPROX_MATCH = 8
    EXTENSIBLE_MATCH = 9


class SubstringChoice(IntEnum):
    """Context tags of the parts of a SubstringFilter."""

    INITIAL = 0
    ANY = 1
    FINAL = 2


class MatchingRuleChoice(IntEnum):
    """Context tags of the fields of a MatchingRuleAssertion."""

    MATCHING_RULE = 1
    TYPE = 2
    MATCH_VALUE = 3
    DN_ATTRIBUTES = 4


FILTER_DESCRIPTIONS: dict[int, str] = {
    FilterChoice.AND: "And",
    FilterChoice.OR: "Or",
    FilterChoice.NOT: "Not",
    FilterChoice.EQUALITY_MATCH: "Equality Match",
    FilterChoice.SUBSTRINGS: "Substrings",
    FilterChoice.GREATER_OR_EQUAL: "Greater Or Equal",
    FilterChoice.LESS_OR_EQUAL: "Less Or Equal",
    FilterChoice.PRESENT: "Present",
    FilterChoice.APPROX_MATCH: "Approx Match",
    FilterChoice.EXTENSIBLE_MATCH: "Extensible Match",
}

SUBSTRING_DESCRIPTIONS: dict[int, str] = {
    SubstringChoice.INITIAL: "Substrings Initial",
    SubstringChoice.ANY: "Substrings Any",
    SubstringChoice.FINAL: "Substrings Final",
}

MATCHING_RULE_DESCRIPTIONS: dict[int, str] = {
    MatchingRuleChoice.MATCHING_RULE: "Matching Rule Assertion Matching Rule",
    MatchingRuleChoice.TYPE: "Matching Rule Assertion Type",
    MatchingRuleChoice.MATCH_VALUE: "Matching Rule Assertion Match Value",
    MatchingRuleChoice.DN_ATTRIBUTES: "Matching Rule Assertion DN Attributes",
}

_SYMBOL_ANY = "*"
_ESCAPED_BYTES = frozenset(b"()\\*\x00")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")

# Operators recognised while reading an attribute description, longest first.
_ATTR_OPERATORS = (
    (":dn:=", FilterChoice.EXTENSIBLE_MATCH, True, False),
    (":dn:", FilterChoice.EXTENSIBLE_MATCH, True, True),
    (":=", FilterChoice.EXTENSIBLE_MATCH, False, False),
    (":", FilterChoice.EXTENSIBLE_MATCH, False, True),
    ("=", FilterChoice.EQUALITY_MATCH, False, False),
    (">=", FilterChoice.GREATER_OR_EQUAL, False, False),
    ("<=", FilterChoice.LESS_OR_EQUAL, False, False),
    ("~=", FilterChoice.APPROX_MATCH, False, False),
)


def _compile_error(message: str) -> LDAPError:
    return LDAPError(ERROR_FILTER_COMPILE, message)


def escape_filter(value: Union[str, bytes]) -> str:
    """Escape special and non-ASCII bytes of a filter value as ``\\xx``."""
    data = value.encode("utf-8", "surrogateescape") if isinstance(value, str) else bytes(value)
    return "".join(
        f"\\{byte:02x}" if byte > 0x7F or byte in _ESCAPED_BYTES else chr(byte)
        for byte in data
    )


def _read_rune(data: bytes, pos: int) -> Optional[tuple[str, int]]:
    """Decode one UTF-8 character at pos; None if the bytes there are invalid."""
    for width in range(1, 5):
        chunk = data[pos:pos + width]
        if len(chunk) < width:
            return None
        try:
            return chunk.decode("utf-8"), width
        except UnicodeDecodeError:
            continue
    return None


def _describe_invalid_byte(byte: int) -> str:
    char = chr(byte)
    if char.isprintable():
        return f"invalid byte: U+{byte:04X} '{char}'"
    return f"invalid byte: U+{byte:04X}"


def decode_escaped_symbols(src: Union[str, bytes]) -> str:
    """Turn ``\\xx`` escapes into literal bytes; raw bytes survive as surrogates."""
    if isinstance(src, str):
        try:
            data = src.encode("utf-8", "surrogateescape")
        except UnicodeEncodeError as exc:
            raise _compile_error(f"ldap: failed to read filter: {exc}") from None
    else:
        data = bytes(src)

    out = bytearray()
    pos = 0
    while pos < len(data):
        rune = _read_rune(data, pos)
        if rune is None or rune[0] == "\ufffd":
            raise _compile_error(f"ldap: error reading rune at position {pos}")
        char, width = rune
        pos += width
        if char != "\\":
            out += data[pos - width:pos]
            continue
        pair = data[pos:pos + 2]
        if not pair:
            raise _compile_error("ldap: invalid characters for escape in filter: EOF")
        if len(pair) < 2:
            raise _compile_error("ldap: missing characters for escape in filter")
        for byte in pair:
            if byte not in _HEX_DIGITS:
                raise _compile_error(
                    "ldap: invalid characters for escape in filter: "
                    + _describe_invalid_byte(byte)
                )
        out.append(int(pair.decode("ascii"), 16))
        pos += 2
    return out.decode("utf-8", "surrogateescape")


def _is_invalid_char(char: str) -> bool:
    return char == "\ufffd" or "\ud800" <= char <= "\udfff"


def compile_filter(filter: str) -> Packet:
    """Compile a string filter such as ``(&(cn=a)(sn=b))`` into a BER packet."""
    if not filter or filter[0] != "(":
        raise _compile_error("ldap: filter does not start with an '('")
    packet, pos = _compile(filter, 1)
    if pos > len(filter):
        raise _compile_error("ldap: unexpected end of filter")
    if pos < len(filter):
        raise _compile_error(
            "ldap: finished compiling filter with extra at end: " + filter[pos:]
        )
    return packet


def _compile_set(filter: str, pos: int, parent: Packet) -> int:
    while pos < len(filter) and filter[pos] == "(":
        child, pos = _compile(filter, pos + 1)
        parent.append_child(child)
    if pos >= len(filter):
        raise _compile_error("ldap: unexpected end of filter")
    return pos + 1


def _new_filter(choice: FilterChoice) -> Packet:
    return new_constructed(ClassType.CONTEXT, choice, FILTER_DESCRIPTIONS[choice])


def _compile(filter: str, pos: int) -> tuple[Packet, int]:
    if pos > len(filter):
        raise _compile_error("ldap: error compiling filter")
    if pos == len(filter) or _is_invalid_char(filter[pos]):
        raise _compile_error(f"ldap: error reading rune at position {pos}")

    first = filter[pos]
    if first == "(":
        packet, new_pos = _compile(filter, pos + 1)
        return packet, new_pos + 1
    if first in "&|":
        packet = _new_filter(FilterChoice.AND if first == "&" else FilterChoice.OR)
        return packet, _compile_set(filter, pos + 1, packet)
    if first == "!":
        packet = _new_filter(FilterChoice.NOT)
        child, new_pos = _compile(filter, pos + 1)
        packet.append_child(child)
        return packet, new_pos
    return _compile_item(filter, pos)


def _compile_item(filter: str, pos: int) -> tuple[Packet, int]:
    reading_attr, reading_rule, reading_condition = range(3)
    state = reading_attr
    packet: Optional[Packet] = None
    attribute: list[str] = []
    matching_rule: list[str] = []
    condition: list[str] = []
    dn_attributes = False

    while pos < len(filter):
        char = filter[pos]
        if char == ")":
            break
        if _is_invalid_char(char):
            raise _compile_error(f"ldap: error reading rune at position {pos}")

        if state == reading_attr:
            for operator, choice, with_dn, to_rule in _ATTR_OPERATORS:
                if filter.startswith(operator, pos):
                    packet = _new_filter(choice)
                    dn_attributes = dn_attributes or with_dn
                    state = reading_rule if to_rule else reading_condition
                    pos += len(operator)
                    break
            else:
                attribute.append(char)
                pos += 1
        elif state == reading_rule:
            if filter.startswith(":=", pos):
                state = reading_condition
                pos += 2
            else:
                matching_rule.append(char)
                pos += 1
        else:
            condition.append(char)
            pos += 1

    if pos >= len(filter):
        raise _compile_error("ldap: unexpected end of filter")
    if packet is None:
        raise _compile_error("ldap: error parsing filter")

    attr_text = "".join(attribute)
    cond_text = "".join(condition)

    if packet.tag == FilterChoice.EXTENSIBLE_MATCH:
        rule_text = "".join(matching_rule)
        if rule_text:
            packet.append_child(new_string(
                ClassType.CONTEXT, TagType.PRIMITIVE, MatchingRuleChoice.MATCHING_RULE,
                rule_text, MATCHING_RULE_DESCRIPTIONS[MatchingRuleChoice.MATCHING_RULE],
            ))
        if attr_text:
            packet.append_child(new_string(
                ClassType.CONTEXT, TagType.PRIMITIVE, MatchingRuleChoice.TYPE,
                attr_text, MATCHING_RULE_DESCRIPTIONS[MatchingRuleChoice.TYPE],
            ))
        packet.append_child(new_string(
            ClassType.CONTEXT, TagType.PRIMITIVE, MatchingRuleChoice.MATCH_VALUE,
            decode_escaped_symbols(cond_text),
            MATCHING_RULE_DESCRIPTIONS[MatchingRuleChoice.MATCH_VALUE],
        ))
        if dn_attributes:
            packet.append_child(new_boolean(
                ClassType.CONTEXT, TagType.PRIMITIVE, MatchingRuleChoice.DN_ATTRIBUTES,
                True, MATCHING_RULE_DESCRIPTIONS[MatchingRuleChoice.DN_ATTRIBUTES],
            ))
    elif packet.tag == FilterChoice.EQUALITY_MATCH and cond_text == _SYMBOL_ANY:
        packet = new_string(
            ClassType.CONTEXT, TagType.PRIMITIVE, FilterChoice.PRESENT,
            attr_text, FILTER_DESCRIPTIONS[FilterChoice.PRESENT],
        )
    elif packet.tag == FilterChoice.EQUALITY_MATCH and _SYMBOL_ANY in cond_text:
        packet = _substrings(attr_text, cond_text)
    else:
        value = decode_escaped_symbols(cond_text)
        packet.append_child(new_string(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, attr_text, "Attribute"
        ))
        packet.append_child(new_string(
            ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, value, "Condition"
        ))

    return packet, pos + 1


def _substrings(attribute: str, condition: str) -> Packet:
    packet = _new_filter(FilterChoice.SUBSTRINGS)
    packet.append_child(new_string(
        ClassType.UNIVERSAL, TagType.PRIMITIVE, Tag.OCTET_STRING, attribute, "Attribute"
    ))
    sequence = new_sequence("Substrings")
    parts = condition.split(_SYMBOL_ANY)
    last = len(parts) - 1
    for index, part in enumerate(parts):
        if not part:
            continue
        if index == 0:
            choice = SubstringChoice.INITIAL
        elif index == last:
            choice = SubstringChoice.FINAL
        else:
            choice = SubstringChoice.ANY
        sequence.append_child(new_string(
            ClassType.CONTEXT, TagType.PRIMITIVE, choice,
            decode_escaped_symbols(part), SUBSTRING_DESCRIPTIONS[choice],
        ))
    packet.append_child(sequence)
    return packet


def decompile_filter(packet: Packet) -> str:
    """Render a filter packet back into its string representation."""
    try:
        return _decompile(packet)
    except LDAPError:
        raise
    except (AttributeError, IndexError, KeyError, TypeError, ValueError):
        raise LDAPError(ERROR_FILTER_DECOMPILE, "ldap: error decompiling filter") from None


_COMPARISON_OPERATORS = {
    FilterChoice.EQUALITY_MATCH: "=",
    FilterChoice.GREATER_OR_EQUAL: ">=",
    FilterChoice.LESS_OR_EQUAL: "<=",
    FilterChoice.APPROX_MATCH: "~=",
}


def _decompile(packet: Packet) -> str:
    tag = packet.tag
    if tag == FilterChoice.AND:
        body = "&" + "".join(_decompile(child) for child in packet.children)
    elif tag == FilterChoice.OR:
        body = "|" + "".join(_decompile(child) for child in packet.children)
    elif tag == FilterChoice.NOT:
        body = "!" + _decompile(packet.children[0])
    elif tag == FilterChoice.SUBSTRINGS:
        pieces = [packet.children[0].decoded_string(), "="]
        for index, child in enumerate(packet.children[1].children):
            if index == 0 and child.tag != SubstringChoice.INITIAL:
                pieces.append(_SYMBOL_ANY)
            pieces.append(escape_filter(child.decoded_string()))
            if child.tag != SubstringChoice.FINAL:
                pieces.append(_SYMBOL_ANY)
        body = "".join(pieces)
    elif tag in _COMPARISON_OPERATORS:
        attribute, value = packet.children[0], packet.children[1]
        body = (
            attribute.decoded_string()
            + _COMPARISON_OPERATORS[FilterChoice(tag)]
            + escape_filter(value.decoded_string())
        )
    elif tag == FilterChoice.PRESENT:
        body = packet.decoded_string() + "=*"
    elif tag == FilterChoice.EXTENSIBLE_MATCH:
        body = _decompile_extensible(packet)
    else:
        body = ""
    return f"({body})"


def _decompile_extensible(packet: Packet) -> str:
    attribute = ""
    matching_rule = ""
    value = ""
    dn_attributes = False
    for child in packet.children:
        if child.tag == MatchingRuleChoice.MATCHING_RULE:
            matching_rule = child.decoded_string()
        elif child.tag == MatchingRuleChoice.TYPE:
            attribute = child.decoded_string()
        elif child.tag == MatchingRuleChoice.MATCH_VALUE:
            value = child.decoded_string()
        elif child.tag == MatchingRuleChoice.DN_ATTRIBUTES:
            dn_attributes = bool(child.value) if child.value is not None else any(child.data)
    pieces = [attribute]
    if dn_attributes:
        pieces.append(":dn")
    if matching_rule:
        pieces.append(":" + matching_rule)
    pieces.append(":=" + escape_filter(value))
    return "".join(pieces)