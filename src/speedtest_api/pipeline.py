"""
Query pipeline for GET /results.

Steps, in order:
1. Ownership ("me"): restrict to the caller's address
2. Text filters (location/country/city), pushed down to the database
3. Radius filter around a center point, in memory
4. Leaderboard: keep each address's fastest download, in memory
5. Pagination over whatever is left

Steps 3-5 work on the fully materialized result list. That is fine for the
table sizes this service sees; a large table would need a spatial index and
database-side pagination instead.
"""
import logging
import math
from dataclasses import dataclass
from typing import Mapping, Optional

from .config import DEFAULT_PAGE_SIZE
from .database import ResultStore, SpeedTestResult
from .errors import InvalidInput, Unauthorized
from .filters import FilterSet
from .geo import within_radius
from .identity import IdentityProvider
from .models import Pagination, ResultPage, SpeedTestResultOut

logger = logging.getLogger(__name__)


@dataclass
class ResultQuery:
    """Parsed GET /results parameters. All filters are optional."""
    location: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    mine: bool = False
    leaderboard: bool = False
    radius: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def has_radius(self) -> bool:
        return self.radius is not None and self.latitude is not None and self.longitude is not None

    @classmethod
    def from_params(
        cls,
        location: Optional[str] = None,
        country: Optional[str] = None,
        city: Optional[str] = None,
        me: Optional[str] = None,
        leaderboard: Optional[str] = None,
        radius: Optional[str] = None,
        latitude: Optional[str] = None,
        longitude: Optional[str] = None,
        page: Optional[str] = None,
        page_size: Optional[str] = None
    ) -> "ResultQuery":
        """
        Build a query from raw query-string values.

        Flags are on only for the exact string "true". Empty numbers count
        as absent, and empty page values fall back to the defaults.

        Raises:
            InvalidInput: If a non-empty number does not parse, is not finite,
                or a page value is below 1
        """
        return cls(
            location=location,
            country=country,
            city=city,
            mine=me == "true",
            leaderboard=leaderboard == "true",
            radius=parse_float("radius", radius),
            latitude=parse_float("latitude", latitude),
            longitude=parse_float("longitude", longitude),
            page=parse_page("page", page, 1),
            page_size=parse_page("pageSize", page_size, DEFAULT_PAGE_SIZE),
        )


def parse_float(name: str, raw: Optional[str]) -> Optional[float]:
    """Parse an optional finite number; None or blank means not given."""
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        raise InvalidInput(f"Invalid {name}")
    if not math.isfinite(value):
        raise InvalidInput(f"Invalid {name}")
    return value


def parse_page(name: str, raw: Optional[str], default: int) -> int:
    """Parse a 1-based page value; None or blank means the default."""
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidInput(f"Invalid {name}")
    if value < 1:
        raise InvalidInput(f"Invalid {name}")
    return value


def build_filters(query: ResultQuery, address: Optional[str] = None) -> FilterSet:
    """Translate the text and ownership parts of a query into store filters."""
    filters = FilterSet()
    if address is not None:
        filters.equals("address", address)
    if query.location:
        filters.contains("location", query.location)
    if query.country:
        filters.contains("country", query.country)
    if query.city:
        filters.contains("city", query.city)
    return filters


def leaderboard(results: list[SpeedTestResult]) -> list[SpeedTestResult]:
    """
    Keep one result per address: the one with the highest download speed.

    Input is expected most-recent-first; on a tie the earlier (more recent)
    result wins. Output keeps the input order.
    """
    best = {}
    for result in results:
        current = best.get(result.address)
        if current is None or result.download_speed > current.download_speed:
            best[result.address] = result
    return [r for r in results if best[r.address] is r]


def paginate(results: list, page: int, page_size: int) -> tuple[list, Pagination]:
    """Slice one page out of results (page is 1-indexed)."""
    total_results = len(results)
    total_pages = math.ceil(total_results / page_size)
    offset = (page - 1) * page_size
    pagination = Pagination(
        page=page,
        page_size=page_size,
        total_results=total_results,
        total_pages=total_pages,
    )
    return results[offset:offset + page_size], pagination


def empty_page(query: ResultQuery) -> ResultPage:
    return ResultPage(
        results=[],
        pagination=Pagination(page=query.page, page_size=query.page_size, total_results=0, total_pages=0),
    )


def run_query(
    store: ResultStore,
    query: ResultQuery,
    provider: Optional[IdentityProvider] = None,
    headers: Optional[Mapping[str, str]] = None
) -> ResultPage:
    """
    Answer a results query.

    Args:
        store: Result store to read from
        query: Parsed query parameters
        provider: Identity provider, needed only when query.mine is set
        headers: Request headers the provider reads from

    Returns:
        ResultPage with the requested slice and pagination totals

    Raises:
        Unauthorized: If query.mine is set and the identity lookup fails
    """
    address = None
    if query.mine:
        if provider is None:
            raise Unauthorized("Unauthorized: could not get address")
        try:
            address = provider.resolve(headers or {})
        except Exception as e:
            raise Unauthorized("Unauthorized: could not get address") from e
        if not address:
            # Anonymous callers own nothing
            return empty_page(query)

    results = store.query(build_filters(query, address))

    if query.has_radius:
        results = [
            r for r in results
            if within_radius(r.latitude, r.longitude, query.latitude, query.longitude, query.radius)
        ]

    if query.leaderboard:
        results = leaderboard(results)

    page_results, pagination = paginate(results, query.page, query.page_size)
    logger.debug(
        "Query matched %d results, returning page %d/%d",
        pagination.total_results, pagination.page, pagination.total_pages
    )
    return ResultPage(
        results=[SpeedTestResultOut.model_validate(r) for r in page_results],
        pagination=pagination,
    )
