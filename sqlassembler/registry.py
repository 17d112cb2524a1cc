import yaml, json, os, logging, threading, typing as t
from pathlib import Path

from .query import QueryAssembler

log = logging.getLogger("registry")

ENTITIES_PATH = Path(os.getenv("ENTITIES_FILE", "config/entities.yaml"))
GLOBAL_MAX_PAGE_SIZE = int(os.getenv("GLOBAL_MAX_PAGE_SIZE", "1000"))

_STRING_MAP = {"type": "object", "additionalProperties": {"type": "string"}}

ENTITIES_SCHEMA: dict[str, t.Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://example.com/entities.schema.json",
    "title": "Entity Whitelists",
    "type": "object",
    "properties": {
        "entities": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "table": {"type": "string", "minLength": 1},
                    "id": {"type": "string", "minLength": 1},
                    "fields": {**_STRING_MAP, "minProperties": 1},
                    "filters": _STRING_MAP,
                    "joins": _STRING_MAP,
                    "joinSpec": {"type": "string"},
                    "maxPageSize": {"type": "integer", "minimum": 1},
                },
                "required": ["table", "id", "fields"],
            },
        },
    },
    "required": ["entities"],
}

class EntityMeta(t.TypedDict, total=False):
    table: str
    id: str
    fields: dict[str, str]
    filters: dict[str, str]
    joins: dict[str, str]
    joinSpec: str
    maxPageSize: int

class RegistryEntry(t.TypedDict):
    table: str
    assembler: QueryAssembler
    maxPageSize: int

def _build_entry(meta: EntityMeta) -> RegistryEntry:
    assembler = QueryAssembler(
        meta["fields"],
        meta["table"],
        meta["id"],
        valid_filters=meta.get("filters"),
        valid_joins=meta.get("joins"),
        join_spec=meta.get("joinSpec"),
    )
    return {
        "table": meta["table"],
        "assembler": assembler,
        "maxPageSize": int(meta.get("maxPageSize", GLOBAL_MAX_PAGE_SIZE)),
    }

class Registry:
    def __init__(self, path: Path | None = None):
        self.path = path or ENTITIES_PATH
        self.entities_cfg: dict[str, EntityMeta] = {}
        self.entries: dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()

    def load_entities(self) -> None:
        import jsonschema

        if not self.path.exists():
            raise RuntimeError(f"Entity file not found: {self.path}")
        with self.path.open("r", encoding="utf-8") as f:
            if self.path.suffix.lower() in (".yaml", ".yml"):
                cfg = yaml.safe_load(f)
            else:
                cfg = json.load(f)
        jsonschema.validate(instance=cfg, schema=ENTITIES_SCHEMA)
        with self._lock:
            self.entities_cfg = dict(cfg["entities"])
            self.entries = {}
        log.info("Loaded %d entities from %s", len(self.entities_cfg), self.path)

    def names(self) -> list[str]:
        return list(self.entities_cfg.keys())

    def ensure_entity(self, name: str) -> RegistryEntry:
        cached = self.entries.get(name)
        if cached:
            return cached
        # Config and cache are swapped together by load_entities.
        with self._lock:
            if name not in self.entities_cfg:
                raise KeyError(f"Unknown entity: {name}")
            cached = self.entries.get(name)
            if cached is None:
                cached = _build_entry(self.entities_cfg[name])
                self.entries[name] = cached
            return cached

    def refresh_all(self) -> dict[str, str]:
        """Re-read the entity file and rebuild every assembler."""
        self.load_entities()
        summaries: dict[str, str] = {}
        for name in self.entities_cfg:
            try:
                entry = self.ensure_entity(name)
                summaries[name] = f"ok ({len(entry['assembler'].whitelist.valid_fields)} fields)"
            except ValueError as e:
                log.warning("Entity %s failed to load: %s", name, e)
                summaries[name] = f"error: {e}"
        return summaries
