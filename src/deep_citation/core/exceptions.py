"""Exception hierarchy for the citation client."""

from typing import Any

import httpx


class DeepCitationError(Exception):
    """Base error for everything raised by this package."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether a caller could reasonably retry. The client itself never does."""
        if self.status_code is None:
            return False
        return self.status_code == httpx.codes.TOO_MANY_REQUESTS or self.status_code >= 500

    def to_response(self) -> dict[str, Any]:
        """Convert to an error payload."""
        response: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response


class ConfigurationError(DeepCitationError):
    """Client constructed with unusable settings."""

    def __init__(self, message: str, setting: str | None = None):
        details = {"setting": setting} if setting else {}
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details=details,
        )


class InvalidInputError(DeepCitationError):
    """Input rejected before any network call."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code="INVALID_INPUT",
            status_code=httpx.codes.BAD_REQUEST,
            details=details,
        )


class ServiceResponseError(DeepCitationError):
    """Non-success response from the verification service."""

    code = "SERVICE_ERROR"
    action = "Request"

    def __init__(self, message: str, status_code: int, body: Any = None):
        details = {"body": body} if body else {}
        super().__init__(
            message=message,
            code=self.code,
            status_code=status_code,
            details=details,
        )

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ServiceResponseError":
        """Build the error from the server's JSON error body when present."""
        try:
            body = response.json()
        except ValueError:
            body = None

        message = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                message = error.get("message")
            elif isinstance(error, str):
                message = error
            message = message or body.get("message")

        return cls(
            message=message or f"{cls.action} failed with status {response.status_code}",
            status_code=response.status_code,
            body=body,
        )


class UploadError(ServiceResponseError):
    """File upload was rejected."""

    code = "UPLOAD_FAILED"
    action = "Upload"


class VerificationError(ServiceResponseError):
    """Citation verification was rejected."""

    code = "VERIFICATION_FAILED"
    action = "Verification"


class ConversionError(ServiceResponseError):
    """URL or office file conversion was rejected."""

    code = "CONVERSION_FAILED"
    action = "Conversion"
