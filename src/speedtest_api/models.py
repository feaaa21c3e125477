from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictStr, ValidationError, field_validator, model_validator
from datetime import datetime
from typing import Optional, List

from .time_utils import ensure_utc

# Client-facing message for each invalid field, checked in declaration order
FIELD_ERROR_MESSAGES = {
    "location": "Invalid location provided",
    "download_speed": "Invalid download speed",
    "upload_speed": "Invalid upload speed",
    "ping": "Invalid ping value",
    "latitude": "Invalid coordinates provided",
    "longitude": "Invalid coordinates provided",
    "submission_id": "Invalid submission ID provided",
}
INVALID_BODY_MESSAGE = "Invalid request body"


class SpeedTestSubmission(BaseModel):
    """Body of POST /results. Numbers must be finite JSON numbers, not strings."""
    model_config = ConfigDict(allow_inf_nan=False)

    location: StrictStr
    download_speed: StrictFloat = Field(..., ge=0, description="Download speed in Mbps")
    upload_speed: StrictFloat = Field(..., ge=0, description="Upload speed in Mbps")
    ping: StrictFloat = Field(..., ge=0, description="Latency in ms")
    latitude: Optional[StrictFloat] = Field(...)
    longitude: Optional[StrictFloat] = Field(...)
    submission_id: StrictStr = Field(..., min_length=1)

    @field_validator("location")
    @classmethod
    def location_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("location must not be blank")
        return v

    @model_validator(mode="after")
    def coordinates_paired(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must both be set or both be null")
        return self


def invalid_input_message(exc: ValidationError) -> str:
    """Map the first validation error to a message naming the bad field."""
    errors = exc.errors()
    if not errors:
        return INVALID_BODY_MESSAGE
    first = errors[0]
    if first["type"] == "model_type":
        return INVALID_BODY_MESSAGE
    loc = first.get("loc") or ()
    if not loc:
        # Model-level check, only coordinates pairing today
        return FIELD_ERROR_MESSAGES["latitude"]
    return FIELD_ERROR_MESSAGES.get(loc[0], INVALID_BODY_MESSAGE)


class SpeedTestResultOut(BaseModel):
    """A stored result as returned by GET /results."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    submission_id: str
    location: str
    country: Optional[str] = None
    city: Optional[str] = None
    download_speed: float
    upload_speed: float
    ping: float
    timestamp: datetime
    submission_minute: str
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_in_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class Pagination(BaseModel):
    """Page position and totals, serialized with camelCase keys."""
    model_config = ConfigDict(populate_by_name=True)

    page: int
    page_size: int = Field(..., alias="pageSize")
    total_results: int = Field(..., alias="totalResults")
    total_pages: int = Field(..., alias="totalPages")


class ResultPage(BaseModel):
    """One page of query results plus pagination info."""
    results: List[SpeedTestResultOut]
    pagination: Pagination


class SubmissionResponse(BaseModel):
    success: bool = True


class AuthStatus(BaseModel):
    address: Optional[str] = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class LocationLookup(BaseModel):
    """Human readable location and, when known, its coordinates."""
    location: str
    coordinates: Optional[Coordinates] = None
