"""
Validation module for the sqlassembler service.

This module guards pagination input at the HTTP boundary.
"""

from .rules import (
    _assert_pagination,
    _cap_page_size,
)

__all__ = [
    "_assert_pagination",
    "_cap_page_size",
]
