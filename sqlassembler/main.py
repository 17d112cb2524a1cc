from __future__ import annotations
from dotenv import load_dotenv

load_dotenv()

import os, logging
from contextlib import asynccontextmanager

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from jsonschema import ValidationError
from pydantic import BaseModel

from .filters import QueryRequest, parse_query_request_json
from .registry import Registry, GLOBAL_MAX_PAGE_SIZE
from .validation import _assert_pagination, _cap_page_size

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
log = logging.getLogger("api")

REG = Registry()


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    REG.load_entities()
    yield


app = FastAPI(title="SQL Assembler Service", version="1.0.0", lifespan=_lifespan)

origins_raw = os.getenv("CORS_ALLOW_ORIGINS", "")
origins = [o.strip() for o in origins_raw.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


class SqlResponse(BaseModel):
    """Built statement plus the paging actually applied."""

    sql: str
    entity: str
    table: str
    pageSizeApplied: int | None = None
    maxPageSize: int


def _build_for(req: QueryRequest) -> SqlResponse:
    entry = REG.ensure_entity(req.entity_name)
    _assert_pagination(req.entity_name, req.page, req.page_size)
    page_size = _cap_page_size(req.entity_name, req.page_size, entry)

    sql = entry["assembler"].build_query(
        req.select,
        req.order,
        req.filters,
        req.page,
        page_size,
    )
    return SqlResponse(
        sql=sql,
        entity=req.entity_name,
        table=entry["table"],
        pageSizeApplied=page_size,
        maxPageSize=entry.get("maxPageSize", GLOBAL_MAX_PAGE_SIZE),
    )


@app.get("/healthz")
def health():
    return {"ok": True, "entities": REG.names()}


@app.get("/entities")
def list_entities():
    """
    List configured entities and the keys a client may select, filter or join on.
    """
    out = []
    for name in REG.names():
        try:
            entry = REG.ensure_entity(name)
        except ValueError as e:
            out.append({"entity": name, "error": str(e)})
            continue
        out.append(
            {
                "entity": name,
                "table": entry["table"],
                "maxPageSize": entry["maxPageSize"],
                **entry["assembler"].describe(),
            }
        )
    return {"entities": out}


@app.get("/sql/{entity}", response_model=SqlResponse)
def build_query(
    entity: str,
    select: str | None = None,
    order: str | None = None,
    filters: str | None = None,
    page: int | None = None,
    page_size: int | None = Query(None, alias="pageSize"),
):
    req = QueryRequest(
        select=select,
        order=order,
        filters=filters,
        page=page,
        page_size=page_size,
        entity_name=entity,
    )
    try:
        return _build_for(req)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/sql", response_model=SqlResponse)
def build_query_from_body(
    payload: dict = Body(..., description="QueryRequest JSON"),
):
    try:
        req = parse_query_request_json(payload, validate=True)
        return _build_for(req)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/reload")
def reload_registry():
    try:
        summary = REG.refresh_all()
        return {"reloaded": summary}
    except Exception as e:
        log.exception("Entity reload failed")
        raise HTTPException(status_code=500, detail=str(e))
