from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse


class APIException(HTTPException):
    def __init__(self, status_code: int, detail: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class AuthError(APIException):
    """Base class for the auth error taxonomy.

    Subclasses pin the HTTP status, a machine-readable ``code`` and a default
    message; callers may override the message.
    """

    http_status = 400
    code = "AUTH_ERROR"
    default_message = "Authentication failed"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(status_code=self.http_status, detail=message or self.default_message, headers=headers)

    @property
    def message(self) -> str:
        return str(self.detail)

    def extra(self) -> Dict[str, Any]:
        return {}


class InvalidPhoneFormat(AuthError):
    http_status = 400
    code = "INVALID_PHONE"
    default_message = "Invalid phone number"


class InvalidCodeFormat(AuthError):
    http_status = 400
    code = "INVALID_OTP_FORMAT"
    default_message = "Invalid OTP format. Must be 4 digits."


class RateLimited(AuthError):
    http_status = 429
    code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many OTP requests. Please try again later."

    def __init__(self, wait_seconds: int, message: Optional[str] = None):
        self.wait_seconds = int(wait_seconds)
        super().__init__(message, headers={"Retry-After": str(max(self.wait_seconds, 0))})

    def extra(self) -> Dict[str, Any]:
        return {"wait_seconds": self.wait_seconds}


class AlreadyRegistered(AuthError):
    http_status = 409
    code = "PHONE_ALREADY_EXISTS"
    default_message = "Phone number already registered. Please Sign In instead."


class NotRegistered(AuthError):
    http_status = 404
    code = "PHONE_NOT_FOUND"
    default_message = "Phone number not registered. Please Sign Up first."


class NoChallengeFound(AuthError):
    http_status = 401
    code = "NO_OTP_FOUND"
    default_message = "No OTP found. Please request a new OTP."


class OTPExpired(AuthError):
    http_status = 401
    code = "OTP_EXPIRED"
    default_message = "OTP has expired. Please request a new OTP."


class CodeMismatch(AuthError):
    http_status = 401
    code = "INVALID_OTP"
    default_message = "Invalid OTP. Please check and try again."


class OTPStorageError(AuthError):
    http_status = 500
    code = "OTP_STORAGE_ERROR"
    default_message = "Failed to issue OTP. Please try again."


class IdentityCreationFailed(AuthError):
    http_status = 500
    code = "ACCOUNT_CREATION_FAILED"
    default_message = "Failed to create account"


class Unauthenticated(AuthError):
    http_status = 401
    code = "UNAUTHENTICATED"
    default_message = "Invalid or expired token"


def create_error_response(error_message: str, code: Optional[str] = None, extra: Optional[Dict[str, Any]] = None) -> dict:
    """Create a standardized error response"""
    body = {
        "success": False,
        "data": None,
        "error": error_message,
    }
    if code:
        body["code"] = code
    if extra:
        body.update(extra)
    return body


def create_success_response(data: dict, message: str = "OK") -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "message": message,
        "data": data,
    }


async def auth_exception_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.code, exc.extra()),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )
