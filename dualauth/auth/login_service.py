"""Client for the separated social-login endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import requests

from dualauth.auth.token_auth import TokenClaims, decode_claims, sanitize_token
from dualauth.config import DualAuthConfig
from dualauth.models.profile_models import LoginIdentity
from dualauth.utils.error_sanitizer import token_preview
from dualauth.utils.errors import ClaimDecodeError, LoginError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class LoginSession:
    """A token issued by the login endpoint, with its decoded claims."""

    token: str
    claims: TokenClaims
    user: Dict[str, Any] = field(default_factory=dict)
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    raw_response: Dict[str, Any] = field(default_factory=dict)

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.claims.exp is None:
            return None
        return datetime.fromtimestamp(self.claims.exp, tz=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the session for display; the token is only previewed."""

        expires_at = self.expires_at
        return {
            "token": token_preview(self.token),
            "provider": self.claims.provider,
            "subject_id": self.claims.subject_id,
            "email": self.claims.email,
            "expires_at": expires_at.isoformat() if expires_at else None,
            "issued_at": self.issued_at.isoformat(),
            "user": self.user,
        }


def _dig(data: Mapping[str, Any], *path: str) -> Any:
    current: Any = data
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


# Locations a token has been returned under by the different login routes
TOKEN_LOCATIONS = (
    ("token",),
    ("access_token",),
    ("session", "access_token"),
    ("data", "token"),
    ("data", "access_token"),
    ("data", "session", "access_token"),
)


def extract_token(body: Mapping[str, Any]) -> Optional[str]:
    """First well-formed token found in a login response body."""
    for path in TOKEN_LOCATIONS:
        token = sanitize_token(_dig(body, *path))
        if token:
            return token
    return None


class SeparatedLoginService:
    """POSTs identity fields to ``/api/auth/login/<social>-separated``."""

    def __init__(
        self,
        config: Optional[DualAuthConfig] = None,
        http_session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or DualAuthConfig.from_env()
        self._http = http_session or requests.Session()

    @property
    def login_url(self) -> str:
        return self.config.login_url

    def _post_json(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        logger.debug("Sending login request", extra={"url": self.login_url})
        try:
            response = self._http.post(
                self.login_url,
                json=payload,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"login request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not 200 <= response.status_code < 300:
            message = ""
            if isinstance(body, Mapping):
                message = body.get("message") or body.get("error") or ""
            logger.error(
                "Login endpoint returned error",
                extra={"status": response.status_code, "detail": message},
            )
            raise LoginError(
                f"login failed with HTTP {response.status_code}"
                + (f": {message}" if message else ""),
                status_code=response.status_code,
            )

        if not isinstance(body, dict):
            raise LoginError("login response is not a JSON object", response.status_code)
        return body

    def login(self, identity: LoginIdentity) -> LoginSession:
        """Log in and return the issued session. Never retries."""

        body = self._post_json(identity.to_payload())

        if body.get("success") is False:
            raise LoginError(
                body.get("message") or body.get("error") or "login was not successful"
            )

        token = extract_token(body)
        if token is None:
            raise LoginError("login response did not contain a usable token")

        try:
            claims = decode_claims(token)
        except ClaimDecodeError as e:
            raise LoginError(f"login returned an undecodable token: {e.message}") from e

        user = body.get("user") if isinstance(body.get("user"), dict) else {}
        session = LoginSession(token=token, claims=claims, user=user, raw_response=body)
        logger.info(
            "Login succeeded",
            extra={
                "provider": claims.provider,
                "token": token_preview(token),
            },
        )
        return session
