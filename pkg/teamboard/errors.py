"""
Error taxonomy.

Server-side errors carry the HTTP status they map to; the Flask app turns
any TeamboardError into a JSON body of the form {"error": message}.
"""


class TeamboardError(Exception):
    """Base class for all Teamboard errors."""
    status = 500


class ValidationError(TeamboardError):
    """A required field is missing or a value is out of range."""
    status = 400


class AuthenticationError(TeamboardError):
    """Missing or invalid bearer credential."""
    status = 401


class NotFoundOrForbidden(TeamboardError):
    """No such record, or the record belongs to someone else.

    Both cases are reported identically so callers cannot probe for the
    existence of other users' records.
    """
    status = 404


class StoreError(TeamboardError):
    """The database could not be read or written."""
    status = 500


class ApiError(TeamboardError):
    """Non-2xx response received by the API client."""

    def __init__(self, message: str, status: int = 500):
        super().__init__(message)
        self.status = status


class OwnershipError(TeamboardError):
    """Raised client-side before a mutation the principal may not perform."""
    status = 403
