"""
Shared error handling for the Relying Party gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class RelyingPartyError(Exception):
    """Base exception for Relying Party services."""

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class UnauthorizedError(RelyingPartyError):
    """Missing or rejected caller bearer token."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__("UNAUTHORIZED", message, details)


class ChallengeExpiredError(RelyingPartyError):
    """One-time password transaction is unknown or has expired."""

    def __init__(
        self,
        message: str = "Unable to parse one-time password identifier.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("CHALLENGE_EXPIRED", message, details)


class ResponseParseError(RelyingPartyError):
    """Backend payload did not have the shape expected for the active platform."""

    def __init__(
        self,
        message: str = "Unable to parse the assertion data from the FIDO2 assertion/result response.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("RESPONSE_PARSE_ERROR", message, details)


class BackendCallError(RelyingPartyError):
    """A call to the identity platform failed.

    Client errors reported by the platform (4xx) keep their status so callers
    see e.g. a rejected password as-is; everything else surfaces as 502.
    """

    def __init__(
        self,
        service: str,
        message: str = "Backend call failed",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.service = service
        self.backend_status = status_code
        http_status = status_code if status_code is not None and 400 <= status_code < 500 else 502
        super().__init__(
            "BACKEND_CALL_FAILED",
            f"{service}: {message}",
            details,
            status_code=http_status,
        )


class MisconfiguredError(RelyingPartyError):
    """Required settings are missing or invalid; raised at startup only."""

    status_code = 500

    def __init__(self, message: str = "Service is misconfigured", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISCONFIGURED", message, details)
