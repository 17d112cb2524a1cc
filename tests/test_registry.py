"""
Tests for the entity registry.
"""

import json
from concurrent.futures import ThreadPoolExecutor

import jsonschema
import pytest
import yaml

from sqlassembler.registry import GLOBAL_MAX_PAGE_SIZE, Registry


ENTITIES = {
    "entities": {
        "users": {
            "table": "users",
            "id": "id",
            "fields": {"id": "id", "name": "name"},
            "filters": {"id": "id ="},
            "maxPageSize": 50,
        },
        "orders": {
            "table": "orders",
            "id": "order_id",
            "fields": {"id": "order_id"},
            "joins": {"customer": "c.name"},
            "joinSpec": "inner:customers AS c:a.customer_id = c.id",
        },
    }
}


def _write_yaml(tmp_path, data):
    path = tmp_path / "entities.yaml"
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture
def registry(tmp_path):
    reg = Registry(_write_yaml(tmp_path, ENTITIES))
    reg.load_entities()
    return reg


def test_load_entities(registry):
    assert registry.names() == ["users", "orders"]


def test_ensure_entity_builds_assembler(registry):
    entry = registry.ensure_entity("users")
    assert entry["table"] == "users"
    assert entry["maxPageSize"] == 50
    assert entry["assembler"].build_query("name", filters="id:9") == (
        "SELECT name FROM users  WHERE id = 9   ;"
    )


def test_ensure_entity_is_cached(registry):
    assert registry.ensure_entity("users") is registry.ensure_entity("users")


def test_default_max_page_size(registry):
    assert registry.ensure_entity("orders")["maxPageSize"] == GLOBAL_MAX_PAGE_SIZE


def test_joined_entity(registry):
    assembler = registry.ensure_entity("orders")["assembler"]
    assert assembler.table == "orders AS a"
    assert assembler.get_fields("id;customer") == "a.order_id, c.name"


def test_unknown_entity(registry):
    with pytest.raises(KeyError, match="Unknown entity"):
        registry.ensure_entity("payments")


def test_json_entity_file(tmp_path):
    path = tmp_path / "entities.json"
    path.write_text(json.dumps(ENTITIES), encoding="utf-8")
    reg = Registry(path)
    reg.load_entities()
    assert reg.ensure_entity("users")["assembler"].get_fields(None) == "id, name"


def test_missing_entity_file(tmp_path):
    with pytest.raises(RuntimeError, match="not found"):
        Registry(tmp_path / "nope.yaml").load_entities()


@pytest.mark.parametrize("entity", [
    {"table": "users", "id": "id"},
    {"table": "users", "id": "id", "fields": {}},
    {"table": "users", "id": "id", "fields": {"id": 1}},
    {"table": "users", "id": "id", "fields": {"id": "id"}, "maxPageSize": 0},
])
def test_entity_schema_violations(tmp_path, entity):
    reg = Registry(_write_yaml(tmp_path, {"entities": {"users": entity}}))
    with pytest.raises(jsonschema.ValidationError):
        reg.load_entities()


def test_refresh_all_reports_each_entity(tmp_path):
    data = json.loads(json.dumps(ENTITIES))
    data["entities"]["orders"]["joinSpec"] = "inner:customers"
    reg = Registry(_write_yaml(tmp_path, data))

    summary = reg.refresh_all()

    assert summary["users"] == "ok (2 fields)"
    assert summary["orders"].startswith("error: ")


def test_refresh_all_picks_up_changes(registry, tmp_path):
    registry.ensure_entity("users")
    data = json.loads(json.dumps(ENTITIES))
    data["entities"]["users"]["fields"]["email"] = "email"
    _write_yaml(tmp_path, data)

    registry.refresh_all()

    assert registry.ensure_entity("users")["assembler"].get_fields(None) == "id, name, email"


def test_concurrent_lookups_share_one_entry(registry):
    with ThreadPoolExecutor(max_workers=8) as pool:
        entries = list(pool.map(registry.ensure_entity, ["users", "orders"] * 40))

    assert all(e is registry.ensure_entity(e["table"]) for e in entries)


def test_lookups_during_refresh(registry):
    def lookup(_):
        return registry.ensure_entity("users")["assembler"].get_fields("id")

    with ThreadPoolExecutor(max_workers=8) as pool:
        pending = pool.map(lookup, range(100))
        registry.refresh_all()
        assert set(pending) == {"id"}
