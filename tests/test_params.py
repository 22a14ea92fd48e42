import pytest

from pingstats import params
from pingstats.params import ActivityQuery, GroupedQuery


class TestPeriod:
    @pytest.mark.parametrize("value", ["24h", "7d", "30d", "6month", "all"])
    def test_allowed(self, value):
        assert params.resolve_period(value) == value

    @pytest.mark.parametrize("value", [None, "", "bogus", "1y", "7 d"])
    def test_defaulted(self, value):
        assert params.resolve_period(value) == params.DEFAULT_PERIOD

    def test_bogus_is_not_all(self):
        assert params.resolve_period("bogus") != "all"


@pytest.mark.parametrize(
    "resolver, raw, expected",
    [
        (params.resolve_period, "6MONTH", "6month"),
        (params.resolve_count_type, "TOTAL", "total"),
        (params.resolve_sort_by, "Total_Pings", "total_pings"),
        (params.resolve_sort_order, "ASC", "asc"),
    ],
)
def test_choices_ignore_case(resolver, raw, expected):
    assert resolver(raw) == expected


def test_count_type():
    assert params.resolve_count_type("total") == "total"
    assert params.resolve_count_type("unique") == "unique"
    assert params.resolve_count_type("COUNT(*); --") == params.DEFAULT_COUNT_TYPE
    assert params.resolve_count_type(None) == params.DEFAULT_COUNT_TYPE


@pytest.mark.parametrize(
    "raw, expected",
    [(None, 1), ("1", 1), ("7", 7), ("0", 1), ("-4", 1), ("two", 1), ("2.5", 1), (" 3 ", 3)],
)
def test_page(raw, expected):
    assert params.resolve_page(raw) == expected


def test_page_upper_bound():
    page = params.resolve_page("99999999999999999999")
    assert page == params.MAX_PAGE
    assert (page - 1) * params.MAX_PAGE_SIZE <= 2**63 - 1


@pytest.mark.parametrize(
    "raw, expected",
    [(None, 10), ("25", 25), ("500", 100), ("100", 100), ("0", 1), ("-1", 1), ("lots", 10)],
)
def test_page_size(raw, expected):
    assert params.resolve_page_size(raw) == expected


class TestSort:
    def test_sort_by_allow_list(self):
        assert params.resolve_sort_by("total_pings") == "total_pings"
        assert params.resolve_sort_by("first_seen") == "first_seen"

    @pytest.mark.parametrize("value", ["drop table", "last_seen", "ip_hmac", "first_seen; --"])
    def test_sort_by_rejected(self, value):
        assert params.resolve_sort_by(value) == params.DEFAULT_SORT_BY

    def test_sort_order(self):
        assert params.resolve_sort_order("asc") == "asc"
        assert params.resolve_sort_order("DESC") == "desc"
        assert params.resolve_sort_order("sideways") == params.DEFAULT_SORT_ORDER
        assert params.resolve_sort_order(None) == params.DEFAULT_SORT_ORDER


def test_grouped_query_from_raw():
    q = GroupedQuery.from_raw("bogus", "nope")
    assert q == GroupedQuery(params.DEFAULT_PERIOD, params.DEFAULT_COUNT_TYPE)
    assert GroupedQuery.from_raw("all", "total").count_expression == "COUNT(*)"
    assert GroupedQuery.from_raw().count_expression == "COUNT(DISTINCT ip_hmac)"


def test_activity_query_from_raw():
    q = ActivityQuery.from_raw("3", "500", "drop table", "ASC")
    assert q == ActivityQuery(page=3, page_size=100, sort_by="first_seen", sort_order="asc")
    assert q.offset == 200
    assert q.order_clause == "first_seen ASC"


def test_activity_query_defaults():
    q = ActivityQuery.from_raw()
    assert (q.page, q.page_size, q.offset) == (1, 10, 0)
    assert q.order_clause == "first_seen DESC"
