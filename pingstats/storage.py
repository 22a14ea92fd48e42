from __future__ import annotations
import os
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.getenv("DATA_DIR", "/data"))
DB_PATH = DATA_DIR / os.getenv("DB_FILENAME", "pings.sqlite3")

# lexical order == chronological order, and sqlite's date functions accept it
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_ts(dt: datetime) -> str:
    return dt.strftime(TIMESTAMP_FORMAT)


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


@contextmanager
def _conn() -> Iterator[sqlite3.Connection]:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    c = sqlite3.connect(DB_PATH)
    c.row_factory = sqlite3.Row
    try:
        c.execute("PRAGMA journal_mode=WAL;")
        with c:
            yield c
    finally:
        c.close()


def init_db():
    with _conn() as con:
        con.execute("""
        CREATE TABLE IF NOT EXISTS ip_registry (
            ip_hmac TEXT PRIMARY KEY,
            created_at TEXT NOT NULL
        )
        """)
        con.execute("""
        CREATE TABLE IF NOT EXISTS ip_pings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            ip_hmac TEXT NOT NULL REFERENCES ip_registry(ip_hmac),
            ping_timestamp TEXT NOT NULL
        )
        """)
        con.execute(
            "CREATE INDEX IF NOT EXISTS idx_ip_pings_hmac_ts ON ip_pings(ip_hmac, ping_timestamp)"
        )
        con.execute(
            "CREATE INDEX IF NOT EXISTS idx_ip_pings_ts ON ip_pings(ping_timestamp)"
        )
    logger.info("database ready at %s", DB_PATH)


def register_if_absent(identifier: str, now: Optional[datetime] = None) -> str:
    """
    Add the identifier to the registry unless it is already there.

    One atomic statement, so concurrent requests for the same visitor can't
    race each other into a duplicate or an error.
    """
    created = format_ts(now or utcnow())
    with _conn() as con:
        con.execute(
            "INSERT INTO ip_registry (ip_hmac, created_at) VALUES (?, ?) "
            "ON CONFLICT (ip_hmac) DO NOTHING",
            (identifier, created),
        )
    return identifier


def count_registered() -> int:
    with _conn() as con:
        return con.execute("SELECT COUNT(*) FROM ip_registry").fetchone()[0]


def last_ping_at(identifier: str) -> Optional[datetime]:
    with _conn() as con:
        row = con.execute(
            "SELECT MAX(ping_timestamp) FROM ip_pings WHERE ip_hmac = ?",
            (identifier,),
        ).fetchone()
    if row is None or row[0] is None:
        return None
    return parse_ts(row[0])


def insert_ping(identifier: str, at: datetime) -> None:
    with _conn() as con:
        con.execute(
            "INSERT INTO ip_pings (ip_hmac, ping_timestamp) VALUES (?, ?)",
            (identifier, format_ts(at)),
        )
