from datetime import datetime, timezone

SUBMISSION_MINUTE_FORMAT = "%Y-%m-%dT%H:%M"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """
    Returns the given time as an aware UTC datetime.

    Naive datetimes (as read back from SQLite) are treated as UTC.
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def submission_minute(ts: datetime) -> str:
    """
    Returns the UTC minute the given time falls in, e.g. "2024-01-15T10:04".
    """
    return ensure_utc(ts).strftime(SUBMISSION_MINUTE_FORMAT)
