"""
Custom Exceptions for InfinitiFlow
==================================

Every error the API reports on purpose is an ``InfinitiFlowError``. The
exception handlers registered in ``infinitiflow.core.error_handlers`` turn
them into the response envelope::

    {"status": "fail", "message": "...", "code": "...", "details": {...}}

Usage:
    from infinitiflow.core.exceptions import ConflictError

    if existing_user:
        raise ConflictError("User already exists with this email")
"""

from typing import Optional, Any, Dict


class InfinitiFlowError(Exception):
    """Base exception for all InfinitiFlow errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def status(self) -> str:
        """'fail' for client errors, 'error' for server errors"""
        return "fail" if 400 <= self.status_code < 500 else "error"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status,
            "message": self.message,
            "code": self.code,
        }
        if self.details:
            data["details"] = self.details
        return data


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(InfinitiFlowError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class IncorrectPasswordError(InfinitiFlowError):
    """Current password supplied for a password change is wrong"""

    status_code = 400

    def __init__(self, message: str = "Your current password is incorrect"):
        super().__init__(message, code="INCORRECT_PASSWORD")


class InvalidOrExpiredTokenError(InfinitiFlowError):
    """One-time (reset / verification) token is unknown or expired"""

    status_code = 400

    def __init__(self, message: str = "Token is invalid or has expired"):
        super().__init__(message, code="INVALID_OR_EXPIRED_TOKEN")


# ============================================
# Authentication Errors (401-type)
# ============================================

class AuthenticationError(InfinitiFlowError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", code: str = "AUTH_FAILED"):
        super().__init__(message, code=code)


class InvalidCredentialsError(AuthenticationError):
    """Email / password combination rejected"""

    def __init__(self, message: str = "Incorrect email or password"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class AccountDeactivatedError(AuthenticationError):
    """Account was soft-deleted"""

    def __init__(self, message: str = "Your account has been deactivated. Please contact support."):
        super().__init__(message, code="ACCOUNT_DEACTIVATED")


class NotAuthenticatedError(AuthenticationError):
    """No usable credentials on the request"""

    def __init__(self, message: str = "You are not logged in! Please log in to get access."):
        super().__init__(message, code="NOT_AUTHENTICATED")


class InvalidTokenError(AuthenticationError):
    """JWT signature, expiry or payload problem"""

    def __init__(self, message: str = "Invalid token. Please log in again."):
        super().__init__(message, code="INVALID_TOKEN")


class WrongTokenTypeError(InvalidTokenError):
    """A non-refresh token was presented where a refresh token is required"""

    def __init__(self, message: str = "Invalid token type"):
        super().__init__(message)
        self.code = "WRONG_TOKEN_TYPE"


# ============================================
# Authorization / Plan Errors (402, 403)
# ============================================

class PaymentRequiredError(InfinitiFlowError):
    """Plan or quota does not allow this action"""

    status_code = 402

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="PAYMENT_REQUIRED", details=details)


class AuthorizationError(InfinitiFlowError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404, 409)
# ============================================

class ResourceNotFoundError(InfinitiFlowError):
    """Requested resource does not exist"""

    status_code = 404

    def __init__(self, message: str = "Resource not found", resource_type: Optional[str] = None):
        details = {"resource_type": resource_type} if resource_type else {}
        super().__init__(message, code="NOT_FOUND", details=details)


class ConflictError(InfinitiFlowError):
    """Unique constraint would be violated"""

    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="CONFLICT", details=details)


# ============================================
# Lockout / Throttling (423, 429)
# ============================================

class AccountLockedError(InfinitiFlowError):
    """Too many failed logins; account temporarily locked"""

    status_code = 423

    def __init__(
        self,
        message: str = "Account temporarily locked due to too many failed login attempts. Please try again later."
    ):
        super().__init__(message, code="ACCOUNT_LOCKED")


class TooManyRequestsError(InfinitiFlowError):
    """Per-user request budget exhausted"""

    status_code = 429

    def __init__(self, message: str = "Too many requests. Please try again later.",
                 retry_after: Optional[int] = None):
        details = {"retry_after": retry_after} if retry_after is not None else {}
        super().__init__(message, code="RATE_LIMITED", details=details)


# ============================================
# External Service Errors (500)
# ============================================

class EmailDeliveryError(InfinitiFlowError):
    """Transactional email could not be sent"""

    status_code = 500

    def __init__(self, message: str = "There was an error sending the email. Try again later."):
        super().__init__(message, code="EMAIL_DELIVERY_FAILED")
