"""Utilities package for dualauth."""

from .errors import (
    AuthorizationRejected,
    ClaimDecodeError,
    DualAuthError,
    ErrorCategory,
    LoginError,
    MissingTokenError,
    RequestValidationError,
    RoutingError,
    ServerError,
    TokenExpiredError,
    TransportError,
)
from .logging_config import RedactingFilter, setup_logging

__all__ = [
    "AuthorizationRejected",
    "ClaimDecodeError",
    "DualAuthError",
    "ErrorCategory",
    "LoginError",
    "MissingTokenError",
    "RequestValidationError",
    "RoutingError",
    "ServerError",
    "TokenExpiredError",
    "TransportError",
    "RedactingFilter",
    "setup_logging",
]
