from __future__ import annotations

import binascii
import json
import logging
import time
from typing import Any, Dict, Mapping, Optional, Union

import jwt
from jwt.utils import base64url_decode
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dualauth.config import SEPARATED_SUFFIX
from dualauth.utils.error_sanitizer import token_preview
from dualauth.utils.errors import ClaimDecodeError, TokenExpiredError

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = frozenset({"undefined", "null"})


class TokenClaims(BaseModel):
    """Decoded claims of a bearer token.

    Only the claims the client relies on are typed; anything else the
    backend puts in the payload is preserved as extra fields.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    provider: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    google_user_id: Optional[str] = Field(default=None, alias="googleUserId")
    google_id: Optional[str] = Field(default=None, alias="googleId")
    sub: Optional[str] = None
    email: Optional[str] = None
    exp: Optional[int] = None
    iat: Optional[int] = None

    @field_validator("user_id", "google_user_id", "google_id", "sub", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        # Backends emit numeric ids for some tables
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value

    @field_validator("exp", "iat", mode="before")
    @classmethod
    def _truncate_timestamps(cls, value: Any) -> Any:
        if isinstance(value, float):
            return int(value)
        return value

    @property
    def is_separated(self) -> bool:
        return bool(self.provider) and self.provider.endswith(SEPARATED_SUFFIX)

    @property
    def subject_id(self) -> Optional[str]:
        if self.is_separated and self.google_user_id:
            return self.google_user_id
        return self.user_id or self.sub or self.email

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "TokenClaims":
        return cls.model_validate(dict(d))


ClaimsLike = Union[TokenClaims, Mapping[str, Any]]


def as_claims(claims: ClaimsLike) -> TokenClaims:
    if isinstance(claims, TokenClaims):
        return claims
    try:
        return TokenClaims.from_dict(claims)
    except ValidationError as e:
        raise ClaimDecodeError(f"invalid token claims: {e.error_count()} error(s)")


def is_placeholder(value: Any) -> bool:
    """True for values that storage layers write when no credential exists."""
    if value is None:
        return True
    if not isinstance(value, str):
        return False
    stripped = value.strip()
    return stripped == "" or stripped in PLACEHOLDER_VALUES or stripped == "false"


def is_valid_token(value: Any) -> bool:
    """Shape-only check that ``value`` can be presented as a bearer JWT.

    The signature is not verified: the client never holds the secret.
    """
    if value is None or not isinstance(value, str):
        return False
    if value in PLACEHOLDER_VALUES or not value.strip():
        return False

    parts = value.split(".")
    if len(parts) != 3:
        return False
    return all(part.strip() for part in parts)


def sanitize_token(value: Any) -> Optional[str]:
    """Return the trimmed token when it is usable, else None."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not is_valid_token(trimmed):
        return None
    return trimmed


def decode_claims(token: str) -> TokenClaims:
    """Decode the claims segment without verifying the signature.

    Only the middle segment is read; the header and signature are opaque
    to the client.

    Raises:
        ClaimDecodeError: token is not JWT-shaped, the payload segment is not
            base64url, or it is not a JSON object with well-typed claims.
    """
    if not is_valid_token(token):
        raise ClaimDecodeError("malformed token")

    segment = token.strip().split(".")[1]
    try:
        payload = json.loads(base64url_decode(segment))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise ClaimDecodeError(f"undecodable token payload: {e}")

    if not isinstance(payload, dict):
        raise ClaimDecodeError("token payload is not a JSON object")

    try:
        return TokenClaims.from_dict(payload)
    except ValidationError as e:
        raise ClaimDecodeError(f"invalid token claims: {e.error_count()} error(s)")


def try_decode_claims(token: Optional[str]) -> Optional[TokenClaims]:
    """Decode claims, logging and returning None on a shape error."""
    if token is None:
        return None
    try:
        return decode_claims(token)
    except ClaimDecodeError as e:
        logger.warning(
            "Discarding undecodable token",
            extra={"token": token_preview(token), "reason": e.message},
        )
        return None


def is_expired(claims: ClaimsLike, now_epoch_seconds: Optional[float] = None) -> bool:
    """True iff ``exp`` is present and strictly in the past.

    A token without ``exp`` never expires here; see :func:`is_usable`.
    """
    parsed = as_claims(claims)
    if parsed.exp is None:
        return False
    now = time.time() if now_epoch_seconds is None else now_epoch_seconds
    return parsed.exp < now


def is_usable(
    claims: ClaimsLike,
    now_epoch_seconds: Optional[float] = None,
    require_exp: bool = False,
) -> bool:
    parsed = as_claims(claims)
    if require_exp and parsed.exp is None:
        return False
    return not is_expired(parsed, now_epoch_seconds)


def ensure_not_expired(
    claims: ClaimsLike,
    now_epoch_seconds: Optional[float] = None,
    require_exp: bool = False,
) -> TokenClaims:
    parsed = as_claims(claims)
    if require_exp and parsed.exp is None:
        raise TokenExpiredError("token has no expiry claim")
    if is_expired(parsed, now_epoch_seconds):
        raise TokenExpiredError()
    return parsed


def verify_token(token: str, secret: str) -> Dict[str, Any]:
    """Verify an HS256 token with a shared secret.

    Only useful where the issuing secret is known (backend debugging,
    test fixtures). Expiry is enforced by PyJWT.
    """
    if not is_valid_token(token):
        raise ClaimDecodeError("malformed token")
    try:
        return jwt.decode(token.strip(), secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError as e:
        raise ClaimDecodeError(f"invalid JWT: {e}")
