from typing import Any, Dict, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details
        )


class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )


class AuthorizationError(AppException):
    """Named AuthorizationError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )


class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND"
        )


class ConflictError(AppException):
    """Overlapping absence window. Reported as a 400 like the other business errors."""
    def __init__(self, message: str, overlapping: Optional[list] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="OVERLAPPING_ABSENCE",
            details={"overlapping": overlapping or []}
        )
        self.overlapping = overlapping or []


class InvalidStateError(AppException):
    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_STATE",
            details={"currentStatus": current_status} if current_status else None
        )
        self.current_status = current_status
