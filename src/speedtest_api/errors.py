"""
Error taxonomy for the speed test API.

Every error carries the HTTP status it maps to, so route handlers never
inspect error structure to decide on a response.
"""


class SpeedTestError(Exception):
    """Base class for errors surfaced to API clients."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(SpeedTestError):
    """Malformed or missing field in a request."""
    status_code = 400


class Unauthorized(SpeedTestError):
    """Caller identity could not be established when it was required."""
    status_code = 401


class DuplicateSubmission(SpeedTestError):
    """The dedup key of a submission is already stored."""
    status_code = 409

    def __init__(self, message: str = "This result has already been submitted."):
        super().__init__(message)


class UpstreamFailure(SpeedTestError):
    """An external collaborator (auth, time source, storage) failed."""
    status_code = 500


class StorageError(UpstreamFailure):
    """The database failed for a reason other than a duplicate key."""
