"""
WiFi Speed Map API
FastAPI application for submitting and browsing WiFi speed test results.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from src.speedtest_api import ingestion
from src.speedtest_api import location as geocoding
from src.speedtest_api import metrics
from src.speedtest_api.config import DATABASE_URL, DEDUP_KEY, IDENTITY_HEADER, LOG_LEVEL
from src.speedtest_api.database import ResultStore
from src.speedtest_api.errors import DuplicateSubmission, InvalidInput, Unauthorized
from src.speedtest_api.identity import HeaderIdentityProvider, IdentityProvider
from src.speedtest_api.models import AuthStatus, Coordinates, LocationLookup, ResultPage, SubmissionResponse
from src.speedtest_api.oracle import Clock, SystemClock
from src.speedtest_api.pipeline import ResultQuery, run_query

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save speed test results"
FETCH_FAILED_MESSAGE = "Failed to fetch speed test results"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the result store once for the lifetime of the process."""
    store = ResultStore.from_url(DATABASE_URL, dedup_key=DEDUP_KEY)
    store.create_schema()
    app.state.store = store
    app.state.identity_provider = HeaderIdentityProvider(IDENTITY_HEADER)
    app.state.clock = SystemClock()
    logger.info("Result store ready (dedup key: %s)", DEDUP_KEY)
    yield
    store.close()


# Initialize FastAPI application
app = FastAPI(
    title="WiFi Speed Map",
    description="Submit WiFi speed test results and browse them by place, distance and leaderboard",
    version="1.0.0",
    lifespan=lifespan
)


def get_store(request: Request) -> ResultStore:
    return request.app.state.store


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report malformed requests as 400 with the offending parameter."""
    errors = exc.errors()
    loc = errors[0].get("loc", ()) if errors else ()
    # loc is e.g. ("query", "pageSize") or ("body", <char offset>)
    names = [part for part in loc if isinstance(part, str)]
    name = names[-1] if names else "request"
    return error_response(400, f"Invalid {name}")


@app.get("/metrics")
def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns:
        Response: Prometheus-formatted metrics
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health(store: ResultStore = Depends(get_store)):
    """
    Health check endpoint.

    Returns:
        dict: API status and database connection status
    """
    database_status = "connected" if store.ping() else "disconnected"
    return {"status": "healthy", "database": database_status}


@app.post("/results", response_model=SubmissionResponse)
def create_result(
    request: Request,
    body: Any = Body(None),
    store: ResultStore = Depends(get_store),
    provider: IdentityProvider = Depends(get_identity_provider),
    clock: Clock = Depends(get_clock)
):
    """
    Store one speed test result for the authenticated caller.

    Responses:
        200: {"success": true}
        400: Invalid field (nothing is written)
        401: Caller address unavailable (nothing is written)
        409: Submission already stored
        500: Unexpected failure
    """
    start_time = time.time()
    try:
        ingestion.submit_result(store, body, provider, request.headers, clock)
    except DuplicateSubmission as e:
        metrics.result_submissions_total.labels(status="duplicate").inc()
        return error_response(e.status_code, e.message)
    except (InvalidInput, Unauthorized) as e:
        logger.warning("Rejected submission: %s", e.message)
        metrics.result_submissions_total.labels(status="rejected").inc()
        return error_response(e.status_code, e.message)
    except Exception:
        logger.exception("Error saving speed test")
        metrics.result_submissions_total.labels(status="error").inc()
        return error_response(500, SAVE_FAILED_MESSAGE)
    finally:
        metrics.request_duration_seconds.labels(endpoint="create_result").observe(time.time() - start_time)

    metrics.result_submissions_total.labels(status="success").inc()
    return SubmissionResponse()


@app.get("/results", response_model=ResultPage)
def list_results(
    request: Request,
    location: Optional[str] = None,
    country: Optional[str] = None,
    city: Optional[str] = None,
    me: Optional[str] = None,
    leaderboard: Optional[str] = None,
    radius: Optional[str] = None,
    latitude: Optional[str] = None,
    longitude: Optional[str] = None,
    page: Optional[str] = None,
    page_size: Optional[str] = Query(None, alias="pageSize"),
    store: ResultStore = Depends(get_store),
    provider: IdentityProvider = Depends(get_identity_provider)
):
    """
    List stored results, most recent first.

    Filters combine with AND:
    - location/country/city: case-insensitive substring
    - me=true: only the caller's results (empty for anonymous callers)
    - radius + latitude + longitude: within radius km of the point
    - leaderboard=true: each address's fastest download only

    Empty values are treated as not given. Pagination is applied last;
    page is 1-indexed.
    """
    start_time = time.time()
    try:
        query = ResultQuery.from_params(
            location=location,
            country=country,
            city=city,
            me=me,
            leaderboard=leaderboard,
            radius=radius,
            latitude=latitude,
            longitude=longitude,
            page=page,
            page_size=page_size,
        )
        result_page = run_query(store, query, provider, request.headers)
    except (InvalidInput, Unauthorized) as e:
        metrics.result_queries_total.labels(status="rejected").inc()
        return error_response(e.status_code, e.message)
    except Exception:
        logger.exception("Error fetching speed tests")
        metrics.result_queries_total.labels(status="error").inc()
        return error_response(500, FETCH_FAILED_MESSAGE)
    finally:
        metrics.request_duration_seconds.labels(endpoint="list_results").observe(time.time() - start_time)

    metrics.result_queries_total.labels(status="success").inc()
    return result_page


@app.get("/auth/status", response_model=AuthStatus)
def auth_status(request: Request, provider: IdentityProvider = Depends(get_identity_provider)):
    """
    Report the caller's address as seen by the auth proxy.

    Returns:
        dict: {"address": <address or null>}
    """
    try:
        address = provider.resolve(request.headers)
    except Exception:
        logger.exception("Error getting address")
        return JSONResponse(status_code=500, content={"address": None})
    return AuthStatus(address=address)


@app.get("/location", response_model=LocationLookup)
def lookup_location(request: Request, lat: Optional[float] = None, lng: Optional[float] = None):
    """
    Describe where the caller is.

    With lat/lng (from the browser's GPS) the coordinates are reverse
    geocoded. Without them the caller's IP address is used instead.

    Returns:
        dict: {"location": "City, Region, Country", "coordinates": {"lat", "lng"} or null}
    """
    if lat is not None and lng is not None:
        return LocationLookup(
            location=geocoding.format_location(lat, lng),
            coordinates=Coordinates(lat=lat, lng=lng),
        )

    client_ip = request.client.host if request.client else None
    place, coordinates = geocoding.get_ip_location(client_ip)
    return LocationLookup(
        location=place,
        coordinates=Coordinates(lat=coordinates[0], lng=coordinates[1]) if coordinates else None,
    )
