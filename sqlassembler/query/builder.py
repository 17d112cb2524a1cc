from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
import logging
import re

from ..filters import (
    JoinDescriptor,
    QueryRequest,
    parse_filter_pairs,
    parse_join_spec,
    parse_select_keys,
)

log = logging.getLogger("query")

JOIN_ALIAS = "a"
JOINED_COLUMN_SEPARATOR = ";"
_DIRECTIONS = ("asc", "desc")

# ASCII only: whitespace and digits accepted by a 32-bit integer parse.
_INT_LITERAL_RE = re.compile(r"[ \t\n\v\f\r]*[+-]?[0-9]+[ \t\n\v\f\r]*")
_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1

# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

def _freeze(mapping: Optional[Mapping[str, str]]) -> Optional[Mapping[str, str]]:
    if mapping is None:
        return None
    return MappingProxyType(dict(mapping))

@dataclass(frozen=True)
class WhitelistConfig:
    """
    The only keys user input may reference. Mapping order is significant:
    it drives the fallback field order and the WHERE predicate order.
    """
    valid_fields: Mapping[str, str]
    valid_filters: Optional[Mapping[str, str]] = None
    valid_joins: Optional[Mapping[str, str]] = None

    def __post_init__(self):
        object.__setattr__(self, "valid_fields", _freeze(self.valid_fields))
        object.__setattr__(self, "valid_filters", _freeze(self.valid_filters))
        object.__setattr__(self, "valid_joins", _freeze(self.valid_joins))

@dataclass(frozen=True)
class TableSpec:
    table: str
    id_column: str
    join_spec: Optional[str] = None

    @property
    def joins_active(self) -> bool:
        return bool(self.join_spec)

    @property
    def effective_table(self) -> str:
        return f"{self.table} AS {JOIN_ALIAS}" if self.joins_active else self.table

    @property
    def effective_id(self) -> str:
        return f"{JOIN_ALIAS}.{self.id_column}" if self.joins_active else self.id_column

# -----------------------------------------------------------------------------
# Clause builders
# -----------------------------------------------------------------------------

def _alias(column: str, joins_active: bool) -> str:
    return f"{JOIN_ALIAS}.{column}" if joins_active else column

def _intersect(keys: Iterable[str], allowed: Mapping[str, str]) -> List[str]:
    """
    Keys present in `allowed`, in input order, first occurrence only.
    """
    return [k for k in dict.fromkeys(keys) if k in allowed]

def _fallback_fields(valid_fields: Mapping[str, str], joins_active: bool) -> str:
    return ", ".join(_alias(col, joins_active) for col in valid_fields.values())

def _build_fields(select: Optional[str], whitelist: WhitelistConfig, joins_active: bool) -> str:
    keys = parse_select_keys(select)
    chosen = _intersect(keys, whitelist.valid_fields)
    if not chosen:
        return _fallback_fields(whitelist.valid_fields, joins_active)

    columns = [_alias(whitelist.valid_fields[k], joins_active) for k in chosen]

    if joins_active and whitelist.valid_joins is not None:
        for k in _intersect(keys, whitelist.valid_joins):
            columns.extend(whitelist.valid_joins[k].split(JOINED_COLUMN_SEPARATOR))

    return ", ".join(columns)

def _build_joins(descriptors: Iterable[JoinDescriptor]) -> str:
    return "".join(d.to_sql() for d in descriptors)

def _is_int_literal(value: str) -> bool:
    if not _INT_LITERAL_RE.fullmatch(value):
        return False
    return _INT32_MIN <= int(value) <= _INT32_MAX

def _format_filter_value(value: str) -> str:
    # No escaping: embedded quotes pass through untouched.
    if _is_int_literal(value):
        return value
    return f"'{value}'"

def _build_where(filters: Optional[str], valid_filters: Optional[Mapping[str, str]]) -> str:
    """
    'id:1;name:bob' -> "WHERE id = 1 AND name = 'bob' "

    Filtering is disabled when no filter whitelist is configured. When none of
    the supplied keys are whitelisted the result is a bare "WHERE ".
    """
    if not filters:
        return ""
    if valid_filters is None:
        return ""

    pairs = parse_filter_pairs(filters)
    keys = [k for k in valid_filters if k in pairs]
    predicates = [f"{valid_filters[k]} {_format_filter_value(pairs[k])} " for k in keys]
    return "WHERE " + "AND ".join(predicates)

def _build_order(order: Optional[str], id_column: str) -> str:
    if not order:
        return ""
    direction = order.lower()
    if direction not in _DIRECTIONS:
        return ""
    return f"ORDER BY {id_column} {direction.upper()}"

def _build_pagination(page: Optional[int], page_size: Optional[int]) -> str:
    if page is None or page_size is None:
        return ""
    offset = "" if page == 1 else f"OFFSET {page_size * (page - 1)}"
    return f"LIMIT {page_size} {offset}"

# -----------------------------------------------------------------------------
# Assembler
# -----------------------------------------------------------------------------

class QueryAssembler:
    """
    Builds a single SELECT statement from user-supplied select/order/filter/
    paging strings, restricted to a fixed whitelist.

    Unknown keys and bad directions are dropped silently. Malformed join or
    filter tokens raise MalformedTokenError. Instances hold no mutable state
    and can be shared across threads.
    """

    def __init__(
        self,
        valid_fields: Mapping[str, str],
        table: str,
        id_column: str,
        valid_filters: Optional[Mapping[str, str]] = None,
        valid_joins: Optional[Mapping[str, str]] = None,
        join_spec: Optional[str] = None,
    ):
        self.whitelist = WhitelistConfig(valid_fields, valid_filters, valid_joins)
        self.table_spec = TableSpec(table, id_column, join_spec)
        self.joins: Tuple[JoinDescriptor, ...] = tuple(parse_join_spec(join_spec))

    @classmethod
    def from_config(cls, whitelist: WhitelistConfig, table_spec: TableSpec) -> "QueryAssembler":
        return cls(
            whitelist.valid_fields,
            table_spec.table,
            table_spec.id_column,
            valid_filters=whitelist.valid_filters,
            valid_joins=whitelist.valid_joins,
            join_spec=table_spec.join_spec,
        )

    @property
    def joins_active(self) -> bool:
        return self.table_spec.joins_active

    @property
    def table(self) -> str:
        return self.table_spec.effective_table

    @property
    def id_column(self) -> str:
        return self.table_spec.effective_id

    def get_fields(self, select: Optional[str]) -> str:
        return _build_fields(select, self.whitelist, self.joins_active)

    def get_joins(self) -> str:
        return _build_joins(self.joins)

    def get_filters(self, filters: Optional[str]) -> str:
        return _build_where(filters, self.whitelist.valid_filters)

    def get_order(self, order: Optional[str]) -> str:
        return _build_order(order, self.id_column)

    @staticmethod
    def get_pagination(page: Optional[int], page_size: Optional[int]) -> str:
        return _build_pagination(page, page_size)

    def build_query(
        self,
        select: Optional[str] = None,
        order: Optional[str] = None,
        filters: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> str:
        """
        Returns 'SELECT <fields> FROM <table> <joins> <where> <order> <pagination>;'.
        Empty clauses leave their separating spaces in place.
        """
        sql = (
            f"SELECT {self.get_fields(select)} FROM {self.table} {self.get_joins()} "
            f"{self.get_filters(filters)} {self.get_order(order)} "
            f"{self.get_pagination(page, page_size)};"
        )
        log.debug("Built query for %s: %s", self.table_spec.table, sql)
        return sql

    def build_request(self, request: QueryRequest) -> str:
        return self.build_query(
            request.select,
            request.order,
            request.filters,
            request.page,
            request.page_size,
        )

    def describe(self) -> Dict[str, List[str]]:
        """
        Whitelisted keys, for listing what a client may ask for.
        """
        return {
            "fields": list(self.whitelist.valid_fields),
            "filters": list(self.whitelist.valid_filters or {}),
            "joins": list(self.whitelist.valid_joins or {}) if self.joins_active else [],
        }

# -----------------------------------------------------------------------------
# Public exports
# -----------------------------------------------------------------------------
__all__ = [
    "JOIN_ALIAS",
    "WhitelistConfig",
    "TableSpec",
    "QueryAssembler",
]
