from __future__ import annotations
import math
import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from starlette.concurrency import run_in_threadpool

from . import storage
from .storage import _conn, format_ts
from .params import ActivityQuery, GroupedQuery

_SNAPPED_OFFSETS = {
    "7d": relativedelta(days=7),
    "30d": relativedelta(days=30),
    "6month": relativedelta(months=6),
}


def _start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def resolve_period_range(period: str, now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """
    (start, end) for a validated period token, or None for "all".

    24h is a sliding window; the day/month periods start at midnight.
    """
    if period == "all":
        return None
    if period == "24h":
        return now - timedelta(hours=24), now
    # relativedelta clamps to the month end (Aug 31 - 6 months -> Feb 28/29)
    return _start_of_day(now - _SNAPPED_OFFSETS[period]), now


def total_pings() -> int:
    with _conn() as con:
        return con.execute("SELECT COUNT(*) FROM ip_pings").fetchone()[0]


def total_unique_users() -> int:
    with _conn() as con:
        return con.execute("SELECT COUNT(DISTINCT ip_hmac) FROM ip_pings").fetchone()[0]


def most_active_user() -> Optional[Dict[str, Any]]:
    # ties: whichever row sqlite hands back first
    with _conn() as con:
        row = con.execute(
            "SELECT ip_hmac, COUNT(*) AS ping_count FROM ip_pings "
            "GROUP BY ip_hmac ORDER BY ping_count DESC LIMIT 1"
        ).fetchone()
    if row is None:
        return None
    return {"ipHmac": row["ip_hmac"], "pingCount": row["ping_count"]}


async def summary() -> Dict[str, Any]:
    # independent reads, each on its own connection
    pings, uniques, most_active = await asyncio.gather(
        run_in_threadpool(total_pings),
        run_in_threadpool(total_unique_users),
        run_in_threadpool(most_active_user),
    )
    return {
        "totalPings": pings,
        "totalUniqueUsers": uniques,
        "mostActiveUser": most_active,
    }


def grouped_by_day(query: GroupedQuery, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = now or storage.utcnow()
    bounds = resolve_period_range(query.period, now)

    where = ""
    args: Tuple[str, ...] = ()
    if bounds is not None:
        where = "WHERE ping_timestamp BETWEEN ? AND ?"
        args = (format_ts(bounds[0]), format_ts(bounds[1]))

    sql = (
        f"SELECT strftime('%Y-%m-%d', ping_timestamp) AS day, {query.count_expression} AS count "
        f"FROM ip_pings {where} GROUP BY day ORDER BY day ASC"
    )
    with _conn() as con:
        rows = con.execute(sql, args).fetchall()
    return [{"day": r["day"], "count": r["count"]} for r in rows]


def unique_activity(query: ActivityQuery) -> Dict[str, Any]:
    sql = (
        "SELECT ip_hmac, MIN(ping_timestamp) AS first_seen, "
        "MAX(ping_timestamp) AS last_seen, COUNT(*) AS total_pings "
        "FROM ip_pings GROUP BY ip_hmac "
        f"ORDER BY {query.order_clause}, ip_hmac ASC "
        "LIMIT ? OFFSET ?"
    )
    with _conn() as con:
        total_items = con.execute("SELECT COUNT(DISTINCT ip_hmac) FROM ip_pings").fetchone()[0]
        rows = con.execute(sql, (query.page_size, query.offset)).fetchall()

    data = [
        {
            "ip_hmac": r["ip_hmac"],
            "first_seen": r["first_seen"],
            "last_seen": r["last_seen"],
            "total_pings": r["total_pings"],
        }
        for r in rows
    ]
    return {
        "data": data,
        "pagination": {
            "totalItems": total_items,
            "currentPage": query.page,
            "pageSize": query.page_size,
            "totalPages": math.ceil(total_items / query.page_size),
        },
    }
