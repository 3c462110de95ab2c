from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    SHAPE = "shape"
    EXPIRED = "expired"
    ROUTING = "routing"
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    TRANSPORT = "transport"
    SERVER = "server"
    CONFIGURATION = "configuration"


class DualAuthError(Exception):
    """Base exception for dualauth with a category and optional HTTP status."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SERVER,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code

    def to_dict(self):
        return {
            "error": self.message,
            "category": self.category.value,
            "status_code": self.status_code,
        }


class ClaimDecodeError(DualAuthError):
    """Token is not JWT-shaped or its claims segment is not a JSON object."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.SHAPE)


class TokenExpiredError(DualAuthError):
    def __init__(self, message: str = "token expired"):
        super().__init__(message, ErrorCategory.EXPIRED, status_code=401)


class RoutingError(DualAuthError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, ErrorCategory.ROUTING, status_code)


class MissingTokenError(DualAuthError):
    def __init__(self, message: str = "no usable token in storage"):
        super().__init__(message, ErrorCategory.UNAUTHORIZED, status_code=401)


class AuthorizationRejected(DualAuthError):
    """Server answered 401 for a token that looked usable locally."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message, ErrorCategory.UNAUTHORIZED, status_code)


class RequestValidationError(DualAuthError):
    def __init__(self, message: str, status_code: Optional[int] = 400):
        super().__init__(message, ErrorCategory.VALIDATION, status_code)


class TransportError(DualAuthError):
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.TRANSPORT)


class ServerError(DualAuthError):
    def __init__(self, message: str, status_code: Optional[int] = 500):
        super().__init__(message, ErrorCategory.SERVER, status_code)


class LoginError(DualAuthError):
    """Login endpoint failed or returned no usable token."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, ErrorCategory.UNAUTHORIZED, status_code)
