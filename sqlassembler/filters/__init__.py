"""
Mini-language parsing for the sqlassembler service.

This module parses the delimiter-based select, filter and join strings and
the camelCase query request payload.
"""

from .models import (
    MalformedTokenError,
    JoinDescriptor,
    split_entries,
    parse_select_keys,
    parse_filter_pairs,
    parse_join_spec,
    QUERY_REQUEST_SCHEMA,
    QueryRequest,
    parse_query_request_json,
)

__all__ = [
    "MalformedTokenError",
    "JoinDescriptor",
    "split_entries",
    "parse_select_keys",
    "parse_filter_pairs",
    "parse_join_spec",
    "QUERY_REQUEST_SCHEMA",
    "QueryRequest",
    "parse_query_request_json",
]
