from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
import json

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class MalformedTokenError(ValueError):
    """
    A join or filter token did not split into the expected number of parts.
    Raised for developer/configuration bugs, never for unknown keys.
    """


# ---------------------------------------------------------------------------
# Mini-language parsing
# ---------------------------------------------------------------------------

ENTRY_SEPARATOR = ";"
ALT_ENTRY_SEPARATOR = ","
PART_SEPARATOR = ":"


@dataclass(frozen=True)
class JoinDescriptor:
    """
    One `type:table:condition` triple from a join spec.
    """
    join_type: str
    joined_table: str
    on_condition: str

    def to_sql(self) -> str:
        return f"{self.join_type.upper()} JOIN {self.joined_table} ON {self.on_condition} "


def split_entries(raw: str) -> List[str]:
    """
    Normalize ',' to ';' and split. Empty segments are kept.
    """
    return raw.replace(ALT_ENTRY_SEPARATOR, ENTRY_SEPARATOR).split(ENTRY_SEPARATOR)


def parse_select_keys(select: Optional[str]) -> List[str]:
    """
    'Id,Name;phone' -> ['id', 'name', 'phone']
    """
    if not select:
        return []
    return split_entries(select.lower())


def parse_filter_pairs(filters: Optional[str]) -> Dict[str, str]:
    """
    'id:1,name:bob' -> {'id': '1', 'name': 'bob'}

    Lowercases the whole input. Last write wins on repeated keys. Everything
    after the first ':' is the value.
    """
    if not filters:
        return {}
    pairs: Dict[str, str] = {}
    for entry in split_entries(filters.lower()):
        parts = entry.split(PART_SEPARATOR, 1)
        if len(parts) != 2:
            raise MalformedTokenError(f"Filter must look like key:value, got {entry!r}")
        pairs[parts[0]] = parts[1]
    return pairs


def parse_join_spec(join_spec: Optional[str]) -> List[JoinDescriptor]:
    """
    'inner:roles AS r:a.role_id = r.id;left:...' -> [JoinDescriptor, ...]
    """
    if not join_spec:
        return []
    out: List[JoinDescriptor] = []
    for entry in split_entries(join_spec):
        parts = entry.split(PART_SEPARATOR)
        if len(parts) != 3:
            raise MalformedTokenError(
                f"Join must look like type:table:condition, got {entry!r}"
            )
        out.append(JoinDescriptor(parts[0], parts[1], parts[2]))
    return out


# ---------------------------------------------------------------------------
# JSON Schema (request payloads)
# ---------------------------------------------------------------------------

QUERY_REQUEST_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://example.com/query-request.schema.json",
    "title": "Query Request",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "entityName": {"type": "string", "minLength": 1},
        "select": {"type": ["string", "null"]},
        "order": {"type": ["string", "null"]},
        "filters": {"type": ["string", "null"]},
        "page": {"type": ["integer", "null"]},
        "pageSize": {"type": ["integer", "null"]},
    },
    "required": ["entityName"],
}


def _validate(instance: Dict[str, Any], schema: Dict[str, Any]) -> None:
    import jsonschema

    jsonschema.validate(instance=instance, schema=schema)


# ---------------------------------------------------------------------------
# Query request with camelCase interop
# ---------------------------------------------------------------------------

@dataclass
class QueryRequest:
    """
    User-supplied inputs for a single build. Every field is optional.
    """
    select: Optional[str] = None
    order: Optional[str] = None
    filters: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
    entity_name: str = ""

    # camelCase JSON helpers
    def to_dict(self) -> Dict[str, Any]:
        return {
            "entityName": self.entity_name,
            "select": self.select,
            "order": self.order,
            "filters": self.filters,
            "page": self.page,
            "pageSize": self.page_size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryRequest":
        return cls(
            select=data.get("select"),
            order=data.get("order"),
            filters=data.get("filters"),
            page=data.get("page"),
            page_size=data.get("pageSize"),
            entity_name=str(data.get("entityName", "") or ""),
        )


def parse_query_request_json(
    payload: Union[str, Dict[str, Any]],
    *,
    validate: bool = True,
) -> QueryRequest:
    """
    Accept a JSON string or dict (camelCase keys), return a QueryRequest.
    """
    data = json.loads(payload) if isinstance(payload, str) else payload
    if validate:
        _validate(data, QUERY_REQUEST_SCHEMA)
    return QueryRequest.from_dict(data)


# ---------------------------------------------------------------------------
# Public exports
# ---------------------------------------------------------------------------

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
