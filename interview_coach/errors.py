"""Domain exceptions raised by the interview coach core."""


class InterviewCoachError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(InterviewCoachError):
    """Referenced record does not exist or belongs to another user."""

    status_code = 404


class InvalidStateError(InterviewCoachError):
    """Operation is not allowed in the record's current state."""

    status_code = 409


class InsufficientDataError(InterviewCoachError):
    """Not enough conversation to produce a report."""

    status_code = 422


class ConflictError(InterviewCoachError):
    status_code = 409


class AuthenticationError(InterviewCoachError):
    status_code = 401


class UpstreamUnavailableError(Exception):
    """The completion service failed or returned nothing usable.

    Never surfaced to end users: every call site recovers with a fallback.
    """
