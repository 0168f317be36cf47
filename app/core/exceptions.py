"""
Error taxonomy for the API.
Each error is an HTTPException with a fixed status code so routes and
services can raise them directly and FastAPI reports them as-is.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: Any = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail if detail is not None else self.default_detail,
            headers=headers,
        )


class AuthenticationMissing(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Missing token"

    def __init__(self, detail: Any = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class AuthenticationInvalid(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Invalid token"


class InvalidCredentials(AppError):
    # One message for unknown email and wrong password alike
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid credentials"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "User exists"


class ValidationFailure(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Missing fields"


class QuotaExceeded(AppError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = "Token limit reached"

    def __init__(self, used: int, limit: int, requested: int, plan_tier: str):
        super().__init__({
            "error": self.default_detail,
            "used": used,
            "limit": limit,
            "requested": requested,
            "plan_tier": plan_tier,
        })


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "User not found"


class UpstreamFailure(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Generation failed"


class ServiceUnavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Service not configured"


class SignatureInvalid(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid webhook signature"


class AdminRequired(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Admin key required"
