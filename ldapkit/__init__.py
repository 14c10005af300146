"""LDAP message building blocks: BER packets, search filters, request encoding and response parsing."""

__version__ = "0.1.0"