import logging
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base error raised by the services; carries an API code and HTTP status."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)


class ValidationFailed(ServiceError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request"


class MissingPhone(ValidationFailed):
    code = "MISSING_PHONE"
    default_message = "Phone number is required"


class InvalidPhoneFormat(ValidationFailed):
    code = "INVALID_PHONE_FORMAT"
    default_message = "Invalid phone number format"


class InvalidPurpose(ValidationFailed):
    code = "INVALID_PURPOSE"
    default_message = "Purpose must be one of: login, registration, password_reset"


class InvalidSession(ValidationFailed):
    code = "INVALID_SESSION"
    default_message = "Invalid or expired OTP session"


class OTPExpired(ValidationFailed):
    code = "OTP_EXPIRED"
    default_message = "OTP has expired"


class InvalidOTP(ValidationFailed):
    code = "INVALID_OTP"
    default_message = "Invalid OTP"


class InvalidToken(ServiceError):
    code = "INVALID_TOKEN"
    status_code = 401
    default_message = "Invalid or expired token"


class InvalidSignature(ServiceError):
    code = "INVALID_SIGNATURE"
    status_code = 401
    default_message = "Invalid webhook signature"


class NotFound(ServiceError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class MaxAttemptsExceeded(ServiceError):
    code = "MAX_ATTEMPTS_EXCEEDED"
    status_code = 429
    default_message = "Maximum OTP attempts exceeded"


class RateLimited(ServiceError):
    code = "RATE_LIMITED"
    status_code = 429
    default_message = "Too many requests. Please try again later."


class UpstreamError(ServiceError):
    code = "UPSTREAM_ERROR"
    status_code = 502
    default_message = "External service unavailable"


def create_error_response(message: str, code: str) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "error": {"message": message, "code": code},
    }


def create_success_response(data, **extra) -> dict:
    """Create a standardized success response"""
    body = {"success": True, "data": data}
    body.update(extra)
    return body


_HTTP_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "RATE_LIMITED",
}


async def service_exception_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.code),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # HTTPBearer answers 403 when the header is missing
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", "UNAUTHORIZED"),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail), _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "body"
        message = f"{field}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=create_error_response(message, "VALIDATION_ERROR"))
