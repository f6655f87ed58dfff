"""Error taxonomy for webx.

Every error carries a ``debug`` mapping with structured context (URL, method,
content length, raw body) so failures can be diagnosed without re-running the
call. Underlying causes are chained with ``raise ... from``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from webx.response import Response


class WebxError(Exception):
    """Base class for webx errors."""

    default_message = "webx error"

    def __init__(self, message: str | None = None, *, debug: dict[str, Any] | None = None) -> None:
        super().__init__(message or self.default_message)
        self.debug: dict[str, Any] = dict(debug or {})

    def __str__(self) -> str:
        message = super().__str__()
        if not self.debug:
            return message
        context = ", ".join(f"{key}={value!r}" for key, value in self.debug.items())
        return f"{message} ({context})"


class BadURLError(WebxError):
    """Raised when a base or target URL is malformed or not absolute."""

    default_message = "invalid URL"


class BadOptionError(WebxError):
    """Raised when an option is applied with invalid arguments."""

    default_message = "invalid option argument"


class BadRequestError(WebxError):
    """Raised when the outgoing request cannot be built or sent."""

    default_message = "invalid request data"


class BadBodyError(BadRequestError):
    """Raised when the request body or multipart form cannot be produced."""

    default_message = "invalid request body"


class BadResponseError(WebxError):
    """Raised when a response cannot be read or decoded."""

    default_message = "invalid response data"


# =============================================================================
# Status-code errors
# =============================================================================


class ResponseError(WebxError):
    """Raised when the exchange succeeded but the status is not a success code.

    The buffered response stays available on ``.response`` so callers can
    inspect the body.
    """

    default_message = "request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        response: Response | None = None,
        debug: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, debug=debug)
        self.response = response

    @property
    def status_code(self) -> int | None:
        return self.response.status_code if self.response is not None else None


class NotFoundError(ResponseError):
    default_message = "not found"


class ForbiddenError(ResponseError):
    default_message = "forbidden"


class UnauthorizedError(ResponseError):
    default_message = "unauthorized"


class InvalidRequestError(ResponseError):
    """The server rejected the request (400 or 405)."""

    default_message = "bad request"


class UnavailableError(ResponseError):
    """Any status outside the success set without a more specific kind."""

    default_message = "service unavailable"


SUCCESS_STATUS_CODES = frozenset({200, 201, 202, 204, 304})

_STATUS_ERRORS: dict[int, type[ResponseError]] = {
    404: NotFoundError,
    403: ForbiddenError,
    401: UnauthorizedError,
    400: InvalidRequestError,
    405: InvalidRequestError,
}


def error_for_status(status_code: int) -> type[ResponseError] | None:
    """Map a status code to its error class, or None for success codes."""
    if status_code in SUCCESS_STATUS_CODES:
        return None
    return _STATUS_ERRORS.get(status_code, UnavailableError)
