# ldapkit

Pure-Python building blocks for LDAP messages (RFC 4511). It includes a
small BER encoder and decoder and a compiler and decompiler for RFC 4515
string filters. It also has helpers that build requests and read responses
for search, modify, modify DN, the "Who Am I?" extended operation and unbind.

It has no dependencies outside the standard library.

## Installation

From a checkout of the package:

```
pip install .
```

## Modules

- `ldapkit.ber`: the `Packet` class (`append_child`, `to_bytes`,
  `decoded_string`), constructors (`new_string`, `new_integer`, `new_boolean`,
  `new_sequence`, `new_constructed`), `decode_packet`, and `build_message`.
  `build_message` wraps an operation, plus any packets that follow it, in an
  LDAP message envelope with a message ID.
- `ldapkit.errors`: `LDAPError`, the result-code constants,
  `describe_result_code`, `get_ldap_error`, `raise_for_result`,
  `is_error_with_code` and `is_error_any_of`.
- `ldapkit.filter`: `compile_filter`, `decompile_filter`, `escape_filter`,
  `decode_escaped_symbols`, and the `FilterChoice`, `SubstringChoice` and
  `MatchingRuleChoice` enums.
- `ldapkit.search`: `SearchRequest`, `SearchResult`, `Entry`,
  `EntryAttribute`, `new_entry`, and the `Scope` and `DerefAliases` enums.
- `ldapkit.modify`: `ModifyRequest`, `Change`, `PartialAttribute`,
  `ModifyOperation`, and `check_modify_response`.
- `ldapkit.moddn`: `ModifyDNRequest` and `check_modify_dn_response`.
- `ldapkit.extended`: `whoami_request`, `parse_whoami_response`,
  `WhoAmIResult` and `unbind_request`.

## Filters

```python
from ldapkit.filter import compile_filter, decompile_filter, escape_filter

packet = compile_filter("(&(sn=Miller)(givenName=Bob))")
print(decompile_filter(packet))        # (&(sn=Miller)(givenName=Bob))
print(escape_filter("a*b(c)"))         # a\2ab\28c\29
```

A malformed filter raises `ldapkit.errors.LDAPError` with result code 201
("Filter Compile Error"). When a packet cannot be decompiled, the error has
result code 202 ("Filter Decompile Error").

## Building requests

Each request's `encode()` returns a list of packets. The list holds the
operation, followed by a controls packet if the request has any controls.
Pass the list to `build_message`.

```python
from ldapkit.ber import build_message
from ldapkit.search import SearchRequest, Scope, DerefAliases
from ldapkit.modify import ModifyRequest
from ldapkit.moddn import ModifyDNRequest
from ldapkit.extended import whoami_request, unbind_request

search = SearchRequest(
    base_dn="dc=example,dc=org",
    scope=Scope.WHOLE_SUBTREE,
    deref_aliases=DerefAliases.ALWAYS,
    filter="(objectClass=person)",
    attributes=["cn", "mail"],
)
wire = build_message(1, search.encode()).to_bytes()

change = ModifyRequest("uid=someone,dc=example,dc=org")
change.replace("mail", ["someone@example.com"])
change.increment("uidNumber", "1")
wire = build_message(2, change.encode()).to_bytes()

# Rename only; pass a new superior DN as the fourth argument to move as well.
rename = ModifyDNRequest("uid=user,ou=people,dc=example,dc=org", "uid=new", True, "")
wire = build_message(3, rename.encode()).to_bytes()

wire = build_message(4, whoami_request()).to_bytes()
wire = build_message(5, unbind_request()).to_bytes()
```

Controls are given as ready-made BER `Packet` objects.

## Reading responses

```python
from ldapkit.ber import decode_packet
from ldapkit.errors import LDAPError, LDAP_RESULT_NO_SUCH_OBJECT, is_error_with_code
from ldapkit.search import SearchResult

result = SearchResult()
try:
    for raw in responses:                   # one encoded message at a time
        if result.add_response(decode_packet(raw)):
            break                           # SearchResultDone seen
except LDAPError as err:
    if is_error_with_code(err, LDAP_RESULT_NO_SUCH_OBJECT):
        ...

for entry in result.entries:
    print(entry.dn, entry.get_attribute_value("cn"))
    print(entry.get_equal_fold_raw_attribute_value("MAIL"))
print(result.format(indent=2))
```

`add_response` gathers entries, referral URLs and the response controls.
The controls are kept as their BER packets.

- `check_modify_response` raises `LDAPError` on failure. On success it
  returns the response controls.
- `check_modify_dn_response` raises `LDAPError` on failure.
- `parse_whoami_response` returns a `WhoAmIResult` holding `authz_id`.

Both modify checks log and ignore a message of the wrong type.
`parse_whoami_response` raises an "Unexpected Response" error for one.

`LDAPError` carries `result_code`, `message`, `matched_dn` and the packet
that caused it. `get_ldap_error` returns such an error, or `None` on
success, without raising it.

## What ldapkit does not do

ldapkit builds and parses messages only. It has no connection handling:

- it opens no sockets and has no TLS or StartTLS;
- it matches no message IDs to replies;
- it does no binding or other authentication;
- it has no paged-search loop;
- it does not decode response controls into typed objects.

Send the encoded bytes over your own transport and feed the replies back
for parsing.

## Running the tests

```
pip install -e .[test]
pytest
```