"""
Ingestion path for submitted speed test results.

Process:
1. Resolve the caller's address from the auth proxy
2. Validate the body (location, speeds, coordinates, submission id)
3. Split location into city and country
4. Notarize: stamp the payload with the trusted clock
5. Record the UTC minute the submission was processed in
6. Insert through the store (duplicates raise DuplicateSubmission)

Validation and identity errors are raised before anything is written.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Tuple

from pydantic import ValidationError

from .database import ResultStore, SpeedTestResult
from .errors import InvalidInput, Unauthorized
from .identity import IdentityProvider
from .models import SpeedTestSubmission, invalid_input_message
from .oracle import Clock, notarize
from .time_utils import submission_minute, utc_now

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


def resolve_identity(provider: IdentityProvider, headers: Mapping[str, str]) -> str:
    """
    Get the caller's address, which submissions require.

    Raises:
        Unauthorized: If the lookup fails or returns no address
    """
    try:
        address = provider.resolve(headers)
    except Exception as e:
        raise Unauthorized("Unauthorized: could not get address") from e
    if not address:
        raise Unauthorized("Unauthorized: no address")
    return address


def validate_submission(body: Any) -> SpeedTestSubmission:
    """
    Validate a raw request body.

    Raises:
        InvalidInput: Naming the first offending field
    """
    try:
        return SpeedTestSubmission.model_validate(body)
    except ValidationError as e:
        raise InvalidInput(invalid_input_message(e)) from e


def split_location(location: str) -> Tuple[str, str]:
    """
    Parse "City, Region, Country" into (city, country).

    Missing or empty segments become "Unknown".
    """
    parts = [part.strip() for part in location.split(",")]
    city = parts[0] if len(parts) > 0 and parts[0] else UNKNOWN
    country = parts[2] if len(parts) > 2 and parts[2] else UNKNOWN
    return city, country


def submit_result(
    store: ResultStore,
    body: Any,
    provider: IdentityProvider,
    headers: Mapping[str, str],
    clock: Clock,
    wall_clock: Optional[Callable[[], datetime]] = None
) -> SpeedTestResult:
    """
    Validate, notarize and store one submission.

    Args:
        store: Result store to write to
        body: Decoded JSON request body (untrusted)
        provider: Identity provider for the caller
        headers: Request headers the provider reads from
        clock: Trusted time source for the stored timestamp
        wall_clock: Source of processing time for submission_minute

    Returns:
        The stored record

    Raises:
        Unauthorized, InvalidInput, UpstreamFailure, DuplicateSubmission
    """
    address = resolve_identity(provider, headers)
    submission = validate_submission(body)

    city, country = split_location(submission.location)
    minute = submission_minute((wall_clock or utc_now)())

    notarized = notarize(clock, {
        "location": submission.location,
        "city": city,
        "country": country,
        "download_speed": submission.download_speed,
        "upload_speed": submission.upload_speed,
        "ping": submission.ping,
        "address": address,
        "latitude": submission.latitude,
        "longitude": submission.longitude,
        "submission_minute": minute,
        "submission_id": submission.submission_id,
    })

    record = store.insert(SpeedTestResult(timestamp=notarized.timestamp, **notarized.payload))
    logger.info(
        "Stored result %s for %s (%s)",
        record.submission_id, address, record.location
    )
    return record
