"""Domain errors raised by the roster services and repositories.

Each error carries the HTTP status code the API layer answers with, so
controllers and the exception handler in `main` never need a mapping
table of their own.
"""


class RosterError(Exception):
    """Base class for all roster errors."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class ValidationError(RosterError):
    """A required request field is missing or empty."""
    status_code = 400


class NotFound(RosterError):
    """The referenced class does not exist."""
    status_code = 404


class Conflict(RosterError):
    """The class name unique constraint was violated on create."""
    status_code = 409


class ReadError(RosterError):
    """Uploaded roster content could not be read or decoded."""
    status_code = 500


class ServiceError(RosterError):
    """The record store is unreachable or a query failed."""
    status_code = 500
