"""
Shared error handling for the Mini App Auth Bridge.

Every failure the service can report is one of the exception classes below.
Verification-stage errors are terminal for the request and never retried.
Upstream errors are terminal per request but callers may retry them.
Messages are user facing: they must never carry the bot token, the derived
secret key, the data-check-string or raw user JSON.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class AuthBridgeException(Exception):
    """Base exception for the auth bridge."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class VerificationError(AuthBridgeException):
    """Errors raised while verifying initData. Never retried."""

    status_code = 400


class MalformedPayload(VerificationError):
    """initData could not be parsed."""

    def __init__(self, message: str = "Malformed initData", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_PAYLOAD", message, details)


class MissingSignature(VerificationError):
    """initData carries no hash field."""

    def __init__(self, message: str = "initData is missing its hash", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISSING_SIGNATURE", message, details)


class SignatureMismatch(VerificationError):
    """initData hash does not match the computed signature."""

    status_code = 403

    def __init__(self, message: str = "Invalid Telegram signature", details: Optional[Dict[str, Any]] = None):
        super().__init__("SIGNATURE_MISMATCH", message, details)


class ExpiredPayload(VerificationError):
    """initData auth_date is older than the configured maximum age."""

    status_code = 401

    def __init__(self, message: str = "initData has expired", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXPIRED_PAYLOAD", message, details)


class MissingUserField(VerificationError):
    """Verified initData has no user field."""

    def __init__(self, message: str = "initData has no user field", details: Optional[Dict[str, Any]] = None):
        super().__init__("MISSING_USER_FIELD", message, details)


class MalformedUserJson(VerificationError):
    """The user field is not a valid Telegram user record."""

    def __init__(self, message: str = "initData user field is malformed", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_USER_JSON", message, details)


class UpstreamError(AuthBridgeException):
    """Identity provider errors. Callers may retry these."""

    status_code = 500


class ProvisioningFailure(UpstreamError):
    """Account lookup or creation failed."""

    def __init__(self, message: str = "Account provisioning failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("PROVISIONING_FAILURE", message, details)


class UpstreamIssuanceFailure(UpstreamError):
    """The identity provider could not issue a token."""

    def __init__(self, message: str = "Token issuance failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_ISSUANCE_FAILURE", message, details)


class ConfigError(AuthBridgeException):
    """The deployment is misconfigured and cannot serve requests."""

    status_code = 500

    def __init__(self, message: str = "Server configuration error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIG_ERROR", message, details)
