"""
Unit tests for Pydantic models.
"""
import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from pydantic import ValidationError
from src.speedtest_api.models import SpeedTestSubmission, SpeedTestResultOut, Pagination, invalid_input_message


def submission_data(**overrides):
    data = {
        "location": "Paris, Ile-de-France, France",
        "download_speed": 250.0,
        "upload_speed": 50.0,
        "ping": 9.5,
        "latitude": 48.8566,
        "longitude": 2.3522,
        "submission_id": "abc",
    }
    data.update(overrides)
    return data


@pytest.mark.unit
class TestSpeedTestSubmission:
    """Test suite for SpeedTestSubmission model."""

    def test_valid_data(self):
        submission = SpeedTestSubmission(**submission_data())

        assert submission.location == "Paris, Ile-de-France, France"
        assert submission.download_speed == 250.0
        assert submission.latitude == 48.8566

    def test_location_trimmed(self):
        submission = SpeedTestSubmission(**submission_data(location="  Paris, IDF, France \n"))
        assert submission.location == "Paris, IDF, France"

    def test_zero_speeds_allowed(self):
        submission = SpeedTestSubmission(**submission_data(download_speed=0.0, upload_speed=0.0, ping=0.0))
        assert submission.ping == 0.0

    def test_negative_speed_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            SpeedTestSubmission(**submission_data(upload_speed=-0.1))

        errors = exc_info.value.errors()
        assert any(error["loc"] == ("upload_speed",) for error in errors)

    def test_numeric_string_rejected(self):
        """Test that speeds must be numbers, not numeric strings."""
        with pytest.raises(ValidationError):
            SpeedTestSubmission(**submission_data(ping="10"))

    @pytest.mark.parametrize("field, message", [
        ("download_speed", "Invalid download speed"),
        ("ping", "Invalid ping value"),
        ("latitude", "Invalid coordinates provided"),
    ])
    def test_non_finite_rejected(self, field, message):
        """Test that inf and nan are rejected even though they are floats."""
        for value in (float("inf"), float("nan")):
            with pytest.raises(ValidationError) as exc_info:
                SpeedTestSubmission(**submission_data(**{field: value}))

            assert invalid_input_message(exc_info.value) == message

    def test_unpaired_coordinates_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            SpeedTestSubmission(**submission_data(longitude=None))

        assert invalid_input_message(exc_info.value) == "Invalid coordinates provided"

    def test_extra_fields_ignored(self):
        submission = SpeedTestSubmission(**submission_data(timestamp="2020-01-01", address="0xevil"))
        assert not hasattr(submission, "address")


@pytest.mark.unit
class TestResultOut:
    """Test suite for the result response models."""

    def test_from_orm_row_with_naive_timestamp(self):
        """Test that naive timestamps read back from SQLite are marked UTC."""
        row = SimpleNamespace(
            id=1, submission_id="abc", location="Paris, IDF, France", country="France", city="Paris",
            download_speed=1.0, upload_speed=2.0, ping=3.0, timestamp=datetime(2024, 1, 15, 10, 0, 0),
            submission_minute="2024-01-15T10:00", address="0xabc", latitude=None, longitude=None,
        )
        out = SpeedTestResultOut.model_validate(row)

        assert out.timestamp.tzinfo == timezone.utc
        assert out.city == "Paris"

    def test_pagination_camel_case(self):
        pagination = Pagination(page=1, page_size=10, total_results=25, total_pages=3)

        assert pagination.model_dump(by_alias=True) == {
            "page": 1,
            "pageSize": 10,
            "totalResults": 25,
            "totalPages": 3,
        }
