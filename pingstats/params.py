"""
Normalization of raw query-string values.

Nothing in here raises: a value that is missing, malformed or not in its
allow-list is replaced by the default. SQL fragments are only ever taken
from the lookup tables below, keyed by an already-validated value.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

PERIODS = ("24h", "7d", "30d", "6month", "all")
DEFAULT_PERIOD = "7d"

COUNT_EXPRESSIONS = {
    "unique": "COUNT(DISTINCT ip_hmac)",
    "total": "COUNT(*)",
}
DEFAULT_COUNT_TYPE = "unique"

SORT_COLUMNS = {
    "first_seen": "first_seen",
    "total_pings": "total_pings",
}
DEFAULT_SORT_BY = "first_seen"

SORT_ORDERS = {
    "asc": "ASC",
    "desc": "DESC",
}
DEFAULT_SORT_ORDER = "desc"

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
# keeps (page - 1) * page_size inside a sqlite INTEGER
MAX_PAGE = (2**63 - 1) // MAX_PAGE_SIZE


def _choice(value: Optional[str], allowed, default: str) -> str:
    if value is None:
        return default
    value = value.strip().lower()
    return value if value in allowed else default


def _int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def resolve_period(value: Optional[str]) -> str:
    return _choice(value, PERIODS, DEFAULT_PERIOD)


def resolve_count_type(value: Optional[str]) -> str:
    return _choice(value, COUNT_EXPRESSIONS, DEFAULT_COUNT_TYPE)


def resolve_sort_by(value: Optional[str]) -> str:
    return _choice(value, SORT_COLUMNS, DEFAULT_SORT_BY)


def resolve_sort_order(value: Optional[str]) -> str:
    return _choice(value, SORT_ORDERS, DEFAULT_SORT_ORDER)


def resolve_page(value: Optional[str]) -> int:
    page = _int(value)
    if page is None:
        return DEFAULT_PAGE
    return min(max(page, 1), MAX_PAGE)


def resolve_page_size(value: Optional[str]) -> int:
    size = _int(value)
    if size is None:
        return DEFAULT_PAGE_SIZE
    return min(max(size, 1), MAX_PAGE_SIZE)


@dataclass(frozen=True)
class GroupedQuery:
    period: str = DEFAULT_PERIOD
    count_type: str = DEFAULT_COUNT_TYPE

    @classmethod
    def from_raw(cls, period: Optional[str] = None, count_type: Optional[str] = None) -> "GroupedQuery":
        return cls(resolve_period(period), resolve_count_type(count_type))

    @property
    def count_expression(self) -> str:
        return COUNT_EXPRESSIONS[self.count_type]


@dataclass(frozen=True)
class ActivityQuery:
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER

    @classmethod
    def from_raw(
        cls,
        page: Optional[str] = None,
        page_size: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> "ActivityQuery":
        return cls(
            resolve_page(page),
            resolve_page_size(page_size),
            resolve_sort_by(sort_by),
            resolve_sort_order(sort_order),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def order_clause(self) -> str:
        return f"{SORT_COLUMNS[self.sort_by]} {SORT_ORDERS[self.sort_order]}"
