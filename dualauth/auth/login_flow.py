"""Login / repair flow for separated social-login accounts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from dualauth.auth.login_service import LoginSession, SeparatedLoginService
from dualauth.auth.token_auth import TokenClaims, decode_claims
from dualauth.config import DualAuthConfig
from dualauth.models.profile_models import ApiResponse, LoginIdentity
from dualauth.services.profile_client import ProfileClient
from dualauth.utils.errors import (
    AuthorizationRejected,
    DualAuthError,
    MissingTokenError,
    TokenExpiredError,
)
from dualauth.utils.token_cleanup import (
    clear_all_auth_data,
    cleanup_tokens,
    find_stored_token,
    store_token,
)
from dualauth.utils.token_store import TokenStore

logger = logging.getLogger(__name__)


class LoginState(str, Enum):
    NO_TOKEN = "no_token"
    LOGGING_IN = "logging_in"
    HAS_TOKEN = "has_token"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass
class Transition:
    source: LoginState
    target: LoginState
    reason: str
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class LoginFlow:
    """Drive a client from no credential to a verified one.

    Neither a failed login nor a server rejection is retried: both leave
    the flow in ``NO_TOKEN`` and the caller decides whether to start over.
    """

    def __init__(
        self,
        store: TokenStore,
        *,
        config: Optional[DualAuthConfig] = None,
        login_service: Optional[SeparatedLoginService] = None,
        profile_client: Optional[ProfileClient] = None,
    ) -> None:
        self.config = config or DualAuthConfig.from_env()
        self.store = store
        self.login_service = login_service or SeparatedLoginService(self.config)
        self.profile_client = profile_client or ProfileClient(store, config=self.config)
        self.state = LoginState.NO_TOKEN
        self.claims: Optional[TokenClaims] = None
        self.history: List[Transition] = []

    def _transition(self, target: LoginState, reason: str) -> None:
        self.history.append(Transition(self.state, target, reason))
        logger.info(
            "Login flow transition",
            extra={"from_state": self.state.value, "to_state": target.value, "reason": reason},
        )
        self.state = target

    def _require(self, *states: LoginState) -> None:
        if self.state not in states:
            expected = ", ".join(s.value for s in states)
            raise DualAuthError(
                f"invalid login flow state {self.state.value}; expected {expected}"
            )

    def resume(self) -> LoginState:
        """Initialise the state from whatever is already in storage."""

        found = find_stored_token(self.store, require_exp=self.config.require_exp)
        if found is None:
            cleanup_tokens(self.store, require_exp=self.config.require_exp)
            self.claims = None
            if self.state is not LoginState.NO_TOKEN:
                self._transition(LoginState.NO_TOKEN, "no usable stored token")
            return self.state

        key, token = found
        store_token(self.store, token)
        self.claims = decode_claims(token)
        self._transition(LoginState.HAS_TOKEN, f"usable token found under {key}")
        return self.state

    def login(self, identity: LoginIdentity) -> LoginSession:
        """Call the separated login endpoint once and store the issued token."""

        self._require(LoginState.NO_TOKEN)
        self._transition(LoginState.LOGGING_IN, f"login as {identity.email}")
        try:
            session = self.login_service.login(identity)
        except DualAuthError as e:
            # Transport failures stay distinct from login rejections
            self._transition(LoginState.NO_TOKEN, f"login failed: {e.message}")
            raise

        if session.claims.provider != self.config.separated_tag:
            logger.warning(
                "Login token carries an unexpected provider claim",
                extra={"provider": session.claims.provider, "expected": self.config.separated_tag},
            )

        # Written before returning so dependent requests see it
        store_token(self.store, session.token)
        self.claims = session.claims
        self._transition(LoginState.HAS_TOKEN, "token stored")
        return session

    def verify(self) -> ApiResponse:
        """Read the profile with the stored token on its routed endpoint."""

        self._require(LoginState.HAS_TOKEN, LoginState.VERIFIED)
        try:
            response = self.profile_client.get_profile()
        except (AuthorizationRejected, TokenExpiredError, MissingTokenError) as e:
            self._reject(e.message)
            raise
        self._transition(LoginState.VERIFIED, "profile read succeeded")
        return response

    def _reject(self, reason: str) -> None:
        self._transition(LoginState.REJECTED, reason)
        clear_all_auth_data(self.store)
        self.claims = None
        self._transition(LoginState.NO_TOKEN, "credentials cleared, re-login required")

    def logout(self) -> None:
        clear_all_auth_data(self.store)
        self.claims = None
        if self.state is not LoginState.NO_TOKEN:
            self._transition(LoginState.NO_TOKEN, "logout")

    def repair(self, identity: LoginIdentity) -> ApiResponse:
        """Recover a broken session with at most one login attempt.

        Stored credentials are checked first; if they verify, no login is
        made. Otherwise storage is wiped, a single login is performed and
        the new token is verified.
        """

        self.resume()
        if self.state is LoginState.HAS_TOKEN:
            try:
                return self.verify()
            except (AuthorizationRejected, TokenExpiredError, MissingTokenError):
                logger.info("Stored token rejected during repair; logging in again")
            except DualAuthError as e:
                # Wrong family or server fault: a new token would not help
                logger.error("Repair verification failed", extra={"error": e.message})
                raise
        else:
            clear_all_auth_data(self.store)

        self.login(identity)
        return self.verify()
