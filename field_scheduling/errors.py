"""
Scheduling error types

Services raise these; the handlers registered in main.py turn every one of
them into the uniform ActionResult failure envelope.
"""


class SchedulingError(Exception):
    """Base class for all expected, user-facing failures"""

    kind = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthenticatedError(SchedulingError):
    kind = "unauthenticated"
    status_code = 401


class ForbiddenError(SchedulingError):
    kind = "forbidden"
    status_code = 403


class NotFoundError(SchedulingError):
    kind = "not_found"
    status_code = 404


class InvalidStateError(SchedulingError):
    kind = "invalid_state"
    status_code = 409


class ValidationError(SchedulingError):
    kind = "validation"
    status_code = 400


class RateLimitedError(SchedulingError):
    kind = "rate_limited"
    status_code = 429


class ConflictError(SchedulingError):
    """Unique-constraint violation (duplicate assignment, duplicate day)"""

    kind = "conflict"
    status_code = 409


class UpstreamError(SchedulingError):
    """Datastore or notifier failure"""

    kind = "upstream_failure"
    status_code = 502
