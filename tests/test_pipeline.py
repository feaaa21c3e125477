"""
Unit tests for the results query pipeline.
"""
import pytest
from unittest.mock import Mock

from src.speedtest_api.pipeline import ResultQuery, build_filters, leaderboard, paginate, parse_float, parse_page, run_query
from src.speedtest_api.identity import HeaderIdentityProvider
from src.speedtest_api.errors import InvalidInput, Unauthorized
from src.speedtest_api.filters import Filter, OP_EQ, OP_LIKE

# Degrees of latitude per kilometer on a 6371 km sphere
DEG_PER_KM = 1 / 111.195


@pytest.fixture
def provider():
    return HeaderIdentityProvider("x-address")


@pytest.mark.unit
class TestBuildFilters:
    """Test suite for build_filters function."""

    def test_no_filters(self):
        assert len(build_filters(ResultQuery())) == 0

    def test_text_filters(self):
        filters = build_filters(ResultQuery(location="Tok", country="Japan", city="Tokyo"))
        assert filters.filters == [
            Filter("location", OP_LIKE, "Tok"),
            Filter("country", OP_LIKE, "Japan"),
            Filter("city", OP_LIKE, "Tokyo"),
        ]

    def test_empty_strings_ignored(self):
        assert len(build_filters(ResultQuery(location="", city=""))) == 0

    def test_address_filter(self):
        filters = build_filters(ResultQuery(mine=True), address="0xabc")
        assert filters.filters == [Filter("address", OP_EQ, "0xabc")]


@pytest.mark.unit
class TestPaginate:
    """Test suite for paginate function."""

    def test_first_page(self):
        page, pagination = paginate(list(range(1, 26)), page=1, page_size=10)
        assert page == list(range(1, 11))
        assert pagination.total_results == 25
        assert pagination.total_pages == 3

    def test_last_partial_page(self):
        page, _ = paginate(list(range(1, 26)), page=3, page_size=10)
        assert page == [21, 22, 23, 24, 25]

    def test_page_past_end_is_empty(self):
        page, pagination = paginate(list(range(1, 26)), page=4, page_size=10)
        assert page == []
        assert pagination.page == 4

    def test_empty(self):
        page, pagination = paginate([], page=1, page_size=10)
        assert page == []
        assert pagination.total_pages == 0


@pytest.mark.unit
class TestLeaderboard:
    """Test suite for leaderboard function."""

    def _result(self, address, download_speed, id):
        r = Mock()
        r.address = address
        r.download_speed = download_speed
        r.id = id
        return r

    def test_keeps_fastest_per_address(self):
        slow = self._result("A", 50.0, 1)
        fast = self._result("A", 90.0, 2)

        assert leaderboard([slow, fast]) == [fast]

    def test_tie_keeps_first_seen(self):
        """Test that on equal speed the most recent (first) result wins."""
        recent = self._result("A", 90.0, 2)
        older = self._result("A", 90.0, 1)

        assert leaderboard([recent, older]) == [recent]

    def test_keeps_input_order(self):
        a_old_best = self._result("A", 99.0, 1)
        b = self._result("B", 10.0, 2)
        a_recent = self._result("A", 20.0, 3)
        ordered = [a_recent, b, a_old_best]

        assert leaderboard(ordered) == [b, a_old_best]


@pytest.mark.unit
class TestRunQuery:
    """Test suite for run_query against an in-memory store."""

    def test_results_most_recent_first(self, store, make_result):
        first = make_result()
        second = make_result()

        page = run_query(store, ResultQuery())
        assert [r.id for r in page.results] == [second.id, first.id]

    def test_pagination_over_25_records(self, store, make_result):
        """Test pages 1 and 3 of 25 results with page size 10."""
        created = [make_result() for _ in range(25)]
        newest_first = [r.id for r in reversed(created)]

        page1 = run_query(store, ResultQuery(page=1, page_size=10))
        page3 = run_query(store, ResultQuery(page=3, page_size=10))

        assert [r.id for r in page1.results] == newest_first[:10]
        assert [r.id for r in page3.results] == newest_first[20:25]
        assert page3.pagination.total_results == 25
        assert page3.pagination.total_pages == 3

    def test_pagination_is_stable(self, store, make_result):
        for _ in range(12):
            make_result()

        first = run_query(store, ResultQuery(page=2, page_size=5))
        second = run_query(store, ResultQuery(page=2, page_size=5))
        assert [r.id for r in first.results] == [r.id for r in second.results]

    def test_radius_filter(self, store, make_result):
        """Test that with radius=5 the 1 km point is kept and the 10 km point dropped."""
        near = make_result(latitude=1 * DEG_PER_KM, longitude=0.0)
        make_result(latitude=10 * DEG_PER_KM, longitude=0.0)
        make_result(latitude=None, longitude=None)

        page = run_query(store, ResultQuery(radius=5, latitude=0.0, longitude=0.0))
        assert [r.id for r in page.results] == [near.id]
        assert page.pagination.total_results == 1

    def test_radius_needs_all_three_params(self, store, make_result):
        make_result(latitude=10 * DEG_PER_KM, longitude=0.0)
        make_result(latitude=None, longitude=None)

        page = run_query(store, ResultQuery(radius=5, latitude=0.0))
        assert page.pagination.total_results == 2

    def test_leaderboard(self, store, make_result):
        """Test that leaderboard keeps only the 90 Mbps result for address A."""
        make_result(address="A", download_speed=50.0)
        best = make_result(address="A", download_speed=90.0)
        other = make_result(address="B", download_speed=10.0)

        page = run_query(store, ResultQuery(leaderboard=True))
        assert [r.id for r in page.results] == [other.id, best.id]
        assert page.pagination.total_results == 2

    def test_leaderboard_applied_before_pagination(self, store, make_result):
        for i in range(15):
            make_result(address=f"user-{i % 3}", download_speed=float(i))

        page = run_query(store, ResultQuery(leaderboard=True, page=1, page_size=2))
        assert page.pagination.total_results == 3
        assert page.pagination.total_pages == 2
        assert len(page.results) == 2

    def test_text_filter(self, store, make_result):
        paris = make_result(location="Paris, IDF, France", city="Paris", country="France")
        make_result(location="Tokyo, Tokyo, Japan", city="Tokyo", country="Japan")

        page = run_query(store, ResultQuery(country="fran"))
        assert [r.id for r in page.results] == [paris.id]

    def test_mine_filters_to_caller(self, store, make_result, provider):
        mine = make_result(address="0xabc")
        make_result(address="0xdef")

        page = run_query(store, ResultQuery(mine=True), provider, {"x-address": "0xabc"})
        assert [r.id for r in page.results] == [mine.id]

    def test_mine_without_identity_is_empty(self, store, make_result, provider):
        """Test that an anonymous caller gets an empty page, not an error."""
        make_result(address="0xabc")

        page = run_query(store, ResultQuery(mine=True), provider, {})
        assert page.results == []
        assert page.pagination.total_results == 0
        assert page.pagination.total_pages == 0

    def test_mine_identity_error_unauthorized(self, store):
        broken = Mock()
        broken.resolve.side_effect = RuntimeError("auth proxy down")

        with pytest.raises(Unauthorized):
            run_query(store, ResultQuery(mine=True), broken, {})

    def test_mine_and_leaderboard_compose(self, store, make_result, provider):
        make_result(address="0xabc", download_speed=10.0)
        best = make_result(address="0xabc", download_speed=70.0)
        make_result(address="0xdef", download_speed=500.0)

        page = run_query(store, ResultQuery(mine=True, leaderboard=True), provider, {"x-address": "0xabc"})
        assert [r.id for r in page.results] == [best.id]

    def test_identity_ignored_without_mine(self, store, make_result):
        broken = Mock()
        broken.resolve.side_effect = RuntimeError("auth proxy down")
        make_result()

        page = run_query(store, ResultQuery(), broken, {})
        assert page.pagination.total_results == 1
        broken.resolve.assert_not_called()


@pytest.mark.unit
class TestResultQueryFromParams:
    """Test suite for parsing raw query-string values."""

    def test_no_params(self):
        assert ResultQuery.from_params() == ResultQuery()

    def test_all_params(self):
        query = ResultQuery.from_params(
            location="Tok", country="Japan", city="Tokyo", me="true", leaderboard="true",
            radius="5", latitude="35.6", longitude="139.7", page="2", page_size="25",
        )
        assert query == ResultQuery(
            location="Tok", country="Japan", city="Tokyo", mine=True, leaderboard=True,
            radius=5.0, latitude=35.6, longitude=139.7, page=2, page_size=25,
        )

    @pytest.mark.parametrize("value", ["yes", "1", "on", "TRUE", "", None])
    def test_flags_only_for_exact_true(self, value):
        query = ResultQuery.from_params(me=value, leaderboard=value)
        assert query.mine is False
        assert query.leaderboard is False

    def test_empty_numbers_are_absent(self):
        query = ResultQuery.from_params(radius="", latitude=" ", longitude="", page="", page_size="")
        assert not query.has_radius
        assert query.page == 1
        assert query.page_size == 10


@pytest.mark.unit
class TestParseHelpers:
    """Test suite for parse_float and parse_page."""

    def test_parse_float(self):
        assert parse_float("radius", "2.5") == 2.5
        assert parse_float("radius", None) is None
        assert parse_float("radius", "") is None

    @pytest.mark.parametrize("raw", ["far", "inf", "-Infinity", "nan"])
    def test_parse_float_rejects_garbage_and_non_finite(self, raw):
        with pytest.raises(InvalidInput) as exc_info:
            parse_float("latitude", raw)
        assert exc_info.value.message == "Invalid latitude"

    def test_parse_page(self):
        assert parse_page("page", "3", 1) == 3
        assert parse_page("page", None, 1) == 1
        assert parse_page("pageSize", "", 10) == 10

    @pytest.mark.parametrize("raw", ["0", "-1", "1.5", "abc"])
    def test_parse_page_rejects(self, raw):
        with pytest.raises(InvalidInput) as exc_info:
            parse_page("pageSize", raw, 10)
        assert exc_info.value.message == "Invalid pageSize"
