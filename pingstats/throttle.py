from __future__ import annotations
import os
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from . import storage
from .hashing import hash_address

logger = logging.getLogger(__name__)

MIN_INTERVAL = timedelta(minutes=int(os.getenv("PING_MIN_INTERVAL_MINUTES", "60")))


@dataclass(frozen=True)
class PingDecision:
    recorded: bool
    message: str

    def as_payload(self) -> dict:
        return {"success": self.recorded, "message": self.message}


def _describe(interval: timedelta) -> str:
    minutes = int(interval.total_seconds() // 60)
    if minutes and minutes % 60 == 0:
        hours = minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def decide(
    last: Optional[datetime],
    now: datetime,
    min_interval: timedelta = MIN_INTERVAL,
) -> PingDecision:
    """
    Throttle transition for one visitor.

    last is None for a visitor that never pinged: always recorded.
    Otherwise the ping is recorded once at least min_interval has elapsed.
    """
    if last is None or now - last >= min_interval:
        return PingDecision(True, "Ping recorded successfully")
    return PingDecision(
        False,
        f"Ping not recorded - less than {_describe(min_interval)} since last ping",
    )


def record_ping(
    raw_address: str,
    pepper: str,
    now: Optional[datetime] = None,
    min_interval: timedelta = MIN_INTERVAL,
) -> PingDecision:
    now = now or storage.utcnow()
    identifier = hash_address(raw_address, pepper)

    # the registry row has to exist before the event that references it
    storage.register_if_absent(identifier, now=now)

    decision = decide(storage.last_ping_at(identifier), now, min_interval)
    if decision.recorded:
        storage.insert_ping(identifier, now)
        logger.info("ping recorded for %s", identifier[:8])
    else:
        logger.debug("ping throttled for %s", identifier[:8])
    return decision
