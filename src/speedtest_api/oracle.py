"""
Trusted time source and notarization of client payloads.

A submission only becomes canonical after it has been stamped with a time
taken from the trusted clock, so a client cannot backdate or forge the
timestamp of its results.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from .errors import UpstreamFailure
from .time_utils import ensure_utc, utc_now


class Clock(ABC):
    """Source of the trusted time used to stamp submissions."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time; implementations should return an aware datetime."""


class SystemClock(Clock):
    """The server's own UTC clock."""

    def now(self) -> datetime:
        return utc_now()


@dataclass(frozen=True)
class NotarizedPayload:
    """Client payload together with the trusted timestamp it was stamped with."""
    payload: Dict[str, Any]
    timestamp: datetime


def notarize(clock: Clock, payload: Dict[str, Any]) -> NotarizedPayload:
    """
    Stamp a payload with the trusted clock's current time.

    Raises:
        UpstreamFailure: If the clock cannot produce a time
    """
    try:
        timestamp = clock.now()
    except Exception as e:
        raise UpstreamFailure("Trusted time source unavailable") from e
    return NotarizedPayload(payload=dict(payload), timestamp=ensure_utc(timestamp))
