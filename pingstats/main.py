from __future__ import annotations
import os
import logging
import sqlite3
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import aggregator, storage
from .hashing import HashingError
from .params import ActivityQuery, GroupedQuery
from .throttle import record_ping

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CLIENT_IP_HEADER = os.getenv("CLIENT_IP_HEADER", "cf-connecting-ip")
CORS_ALLOW_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()
]

logger = logging.getLogger(__name__)

app = FastAPI(title="pingstats")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def get_pepper() -> str:
    # an empty pepper is rejected by the hasher, after the address check
    return os.getenv("PINGSTATS_PEPPER", "")


def get_now() -> datetime:
    return storage.utcnow()


@app.on_event("startup")
async def startup():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    storage.init_db()


@app.exception_handler(sqlite3.Error)
async def storage_error(request: Request, exc: sqlite3.Error):
    logger.exception("storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(HashingError)
async def hashing_error(request: Request, exc: HashingError):
    logger.error("cannot derive visitor identifier: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.post("/ping")
def ping(
    request: Request,
    pepper: str = Depends(get_pepper),
    now: datetime = Depends(get_now),
):
    ip = request.headers.get(CLIENT_IP_HEADER, "").strip()
    if not ip:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "IP address not found in request"},
        )
    return record_ping(ip, pepper, now=now).as_payload()


@app.get("/stats")
def stats():
    return {"total": storage.count_registered()}


@app.get("/stats/summary")
async def stats_summary():
    return await aggregator.summary()


@app.get("/pings/grouped")
def pings_grouped(
    period: Optional[str] = None,
    count_type: Optional[str] = Query(None, alias="countType"),
    now: datetime = Depends(get_now),
):
    query = GroupedQuery.from_raw(period, count_type)
    return aggregator.grouped_by_day(query, now=now)


@app.get("/pings/unique-activity")
def pings_unique_activity(
    page: Optional[str] = None,
    page_size: Optional[str] = Query(None, alias="pageSize"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
):
    query = ActivityQuery.from_raw(page, page_size, sort_by, sort_order)
    return aggregator.unique_activity(query)
