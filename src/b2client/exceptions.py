"""Exception hierarchy for the b2client library."""

from __future__ import annotations


class B2Error(Exception):
    """Base exception for all b2client errors."""

    pass


class APIError(B2Error):
    """Raised when the B2 service answers with a non-2xx status.

    Carries the HTTP status, the service's machine-readable code and the
    human-readable message from the JSON error body.
    """

    def __init__(self, status: int, code: str, message: str) -> None:
        super().__init__(f"{status} {code}: {message}")
        self.status = status
        self.code = code
        self.message = message


class AuthenticationError(APIError):
    """Raised when the account credentials are rejected."""

    pass


class SessionError(B2Error):
    """Raised when there's an issue with the session state."""

    pass


class ValidationError(B2Error, ValueError):
    """Raised for invalid arguments, before any request is issued."""

    pass


class ResponseDecodeError(B2Error):
    """Raised when a response body or header cannot be decoded."""

    pass


class NoSuchFileError(B2Error):
    """Raised when no file with the given name exists in the bucket."""

    pass


class NoSuchBucketError(B2Error):
    """Raised when no bucket with the given name exists."""

    pass


def unwrap_error(exc: BaseException | None) -> APIError | None:
    """Return the APIError behind ``exc``, if there is one.

    Follows explicit ``raise ... from`` wrapping (``__cause__``) so that an
    APIError wrapped in another exception is still found. Exceptions that
    merely happened while handling an APIError are not unwrapped.
    """
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, APIError):
            return exc
        seen.add(id(exc))
        exc = exc.__cause__
    return None
