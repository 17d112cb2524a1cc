"""
Query assembly module for the sqlassembler service.

This module builds SELECT statements from whitelisted user input.
"""

from .builder import (
    JOIN_ALIAS,
    WhitelistConfig,
    TableSpec,
    QueryAssembler,
)

__all__ = [
    "JOIN_ALIAS",
    "WhitelistConfig",
    "TableSpec",
    "QueryAssembler",
]
