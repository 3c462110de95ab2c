"""
Redaction helpers that keep credentials out of logs and error output.
"""

import re
from typing import Any, Dict, Optional

JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")
BEARER_PATTERN = re.compile(r"(Bearer\s+)[^\s\"',]+", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")


def token_preview(token: Optional[str], length: int = 20) -> str:
    """Short, log-safe preview of a credential."""
    if not token:
        return "<none>"
    if len(token) <= length:
        return "[REDACTED]"
    return f"{token[:length]}..."


def redact_text(text: str, redact_emails: bool = True) -> str:
    """
    Mask bearer credentials, JWTs and (optionally) email addresses.

    Args:
        text: Message to sanitize
        redact_emails: Whether email addresses are masked as well

    Returns:
        Text safe to write to logs
    """
    text = BEARER_PATTERN.sub(r"\1[REDACTED_TOKEN]", text)
    text = JWT_PATTERN.sub("[REDACTED_JWT]", text)

    # password=..., token=..., secret=...
    text = re.sub(
        r"((?:password|token|secret|api_key)\s*[=:]\s*)[\"']?[^\s\"',]+[\"']?",
        r"\1[REDACTED]",
        text,
        flags=re.IGNORECASE,
    )

    if redact_emails:
        text = EMAIL_PATTERN.sub("[REDACTED_EMAIL]", text)
    return text


def sanitize_error_message(error: Exception, include_details: bool = False) -> str:
    """
    Sanitize error messages before they are shown to a user.

    Args:
        error: The exception to sanitize
        include_details: Whether to include the (redacted) exception text

    Returns:
        Sanitized error message
    """
    if not include_details:
        return "An internal error occurred. Please try again later."
    return redact_text(str(error))


def create_safe_error_response(
    error: Exception, include_type: bool = False
) -> Dict[str, Any]:
    """Build a JSON-serialisable error payload for CLI output."""
    to_dict = getattr(error, "to_dict", None)
    if callable(to_dict):
        response = dict(to_dict())
        response["error"] = redact_text(response["error"])
    else:
        response = {"error": sanitize_error_message(error)}
    response["success"] = False

    if include_type:
        response["error_type"] = type(error).__name__

    return response
