"""Error kinds shared by the data-access layer, the API and the access gate.

Absence (missing tab, missing row) is returned as a value by the resolver and
locator; these exceptions are for conditions the caller must handle.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    INVALID = "invalid"
    TRANSPORT = "transport"


class DashboardError(Exception):
    kind: ErrorKind = ErrorKind.TRANSPORT
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.kind in {ErrorKind.RATE_LIMITED, ErrorKind.TRANSPORT}

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


class UnauthorizedError(DashboardError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = 401


class ForbiddenError(DashboardError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403


class NotFoundError(DashboardError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class TabNotFoundError(NotFoundError):
    """The requested tab does not exist in the spreadsheet."""

    def __init__(self, message: str, *, tab_name: str | None = None) -> None:
        super().__init__(message)
        self.tab_name = tab_name


class RateLimitedError(DashboardError):
    kind = ErrorKind.RATE_LIMITED
    status_code = 429


class InvalidRequestError(DashboardError):
    kind = ErrorKind.INVALID
    status_code = 400


class TransportError(DashboardError):
    kind = ErrorKind.TRANSPORT
    status_code = 502
