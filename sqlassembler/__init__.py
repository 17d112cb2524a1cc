"""
Whitelist-driven SQL SELECT assembly.

Builds one SELECT statement from client-supplied select, filter, order and
paging strings without letting the client reach non-whitelisted columns.
"""

from .filters import MalformedTokenError, QueryRequest
from .query import QueryAssembler, TableSpec, WhitelistConfig

__all__ = [
    "MalformedTokenError",
    "QueryRequest",
    "QueryAssembler",
    "TableSpec",
    "WhitelistConfig",
]
