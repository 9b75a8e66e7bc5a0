from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    CONFIGURATION_MISSING = "CONFIGURATION_MISSING"
    CONFIGURATION_INVALID = "CONFIGURATION_INVALID"
    UPSTREAM_FETCH_FAILED = "UPSTREAM_FETCH_FAILED"
    TAB_NOT_FOUND = "TAB_NOT_FOUND"


_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.CONFIGURATION_MISSING: 500,
    ErrorCode.CONFIGURATION_INVALID: 500,
    ErrorCode.UPSTREAM_FETCH_FAILED: 500,
    ErrorCode.TAB_NOT_FOUND: 404,
}


class SheetViewError(Exception):
    """Raised for all expected failure conditions.

    Adapters, the refresh cache and request handlers raise it; server.py
    catches it and serialises it into a JSON error response. Business logic
    should let it propagate rather than catching it.
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return _HTTP_STATUS[self.code]

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


def missing_env(name: str) -> SheetViewError:
    """Build the error reported when a required environment variable is unset."""
    return SheetViewError(
        code=ErrorCode.CONFIGURATION_MISSING,
        message=f"{name} environment variable not configured",
    )
