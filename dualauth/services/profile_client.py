"""
Profile API client that routes every request by the stored token's claims.

Every call resolves its URL through :class:`ProviderRouter` right before
the request is built. A 401 clears all local credentials and is never
retried; a 404 is reported as a routing error and never answered by
trying the other endpoint family.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import requests

from dualauth.auth.provider_router import Operation, ProviderRouter
from dualauth.auth.token_auth import TokenClaims, is_usable, sanitize_token, try_decode_claims
from dualauth.config import DualAuthConfig
from dualauth.models.profile_models import ApiResponse, ProfileUpdate, compact
from dualauth.utils.error_sanitizer import token_preview
from dualauth.utils.errors import (
    AuthorizationRejected,
    DualAuthError,
    ErrorCategory,
    MissingTokenError,
    RequestValidationError,
    RoutingError,
    ServerError,
    TokenExpiredError,
    TransportError,
)
from dualauth.utils.token_cleanup import (
    clear_all_auth_data,
    cleanup_tokens,
    store_token,
)
from dualauth.utils.token_store import CANONICAL_TOKEN_KEY, LEGACY_TOKEN_KEYS, TokenStore

logger = logging.getLogger(__name__)


class ProfileClient:
    """Read and update the signed-in account's profile."""

    def __init__(
        self,
        store: TokenStore,
        router: Optional[ProviderRouter] = None,
        config: Optional[DualAuthConfig] = None,
        http_session: Optional[requests.Session] = None,
        check_expiry: bool = True,
    ) -> None:
        self.config = config or DualAuthConfig.from_env()
        self.store = store
        self.router = router or ProviderRouter.from_config(self.config)
        self.timeout = self.config.timeout
        self.check_expiry = check_expiry
        self._http = http_session or requests.Session()

    # -- token handling -------------------------------------------------

    def _decodable_tokens(self) -> Iterator[Tuple[str, TokenClaims]]:
        for key in (CANONICAL_TOKEN_KEY,) + LEGACY_TOKEN_KEYS:
            token = sanitize_token(self.store.get(key))
            claims = try_decode_claims(token) if token else None
            if claims is not None:
                yield token, claims

    def current_token(self) -> Tuple[str, TokenClaims]:
        """Return the stored token and its claims, or raise.

        Keys are scanned canonical first, then legacy; the first decodable
        token that is still usable wins, as in ``find_stored_token``.

        Raises:
            MissingTokenError: nothing decodable in storage (malformed entries
                are cleaned up first).
            TokenExpiredError: every decodable token is expired; credentials
                are cleared.
        """
        require_exp = self.config.require_exp
        candidates = list(self._decodable_tokens())
        if not candidates:
            cleanup_tokens(self.store, require_exp=require_exp)
            raise MissingTokenError()

        if not self.check_expiry:
            return candidates[0]

        for token, claims in candidates:
            if is_usable(claims, require_exp=require_exp):
                return token, claims

        clear_all_auth_data(self.store)
        logger.warning(
            "Stored token expired; credentials cleared",
            extra={"token": token_preview(candidates[0][0])},
        )
        raise TokenExpiredError()

    @staticmethod
    def _headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    # -- request plumbing -----------------------------------------------

    def _send(
        self,
        method: str,
        url: str,
        token: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        try:
            response = self._http.request(
                method,
                url,
                json=payload,
                headers=self._headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Profile request failed in transport", extra={"url": url})
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        return self._handle_response(response, method, url)

    def _handle_response(self, response: requests.Response, method: str, url: str) -> ApiResponse:
        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text[:200]} if response.text else {}

        parsed = ApiResponse.from_json(response.status_code, body)
        status = response.status_code
        detail = parsed.message or f"HTTP {status}"

        if 200 <= status < 300:
            if not parsed.success:
                logger.warning(
                    "Profile request reported failure",
                    extra={"method": method, "url": url, "status": status, "detail": detail},
                )
                raise RequestValidationError(
                    f"{method} {url} reported failure: {detail}", status_code=status
                )
            fresh = sanitize_token(parsed.token)
            if fresh:
                store_token(self.store, fresh)
            logger.info("Profile request succeeded", extra={"method": method, "url": url})
            return parsed

        logger.warning(
            "Profile request rejected",
            extra={"method": method, "url": url, "status": status, "detail": detail},
        )
        if status == 401:
            clear_all_auth_data(self.store)
            raise AuthorizationRejected(f"{method} {url} rejected the token: {detail}")
        if status == 403:
            raise DualAuthError(
                f"{method} {url} forbidden: {detail}",
                category=ErrorCategory.UNAUTHORIZED,
                status_code=403,
            )
        if status == 404:
            raise RoutingError(f"{method} {url} not found: {detail}", status_code=404)
        if status >= 500:
            raise ServerError(f"{method} {url} failed on the server: {detail}", status_code=status)
        raise RequestValidationError(f"{method} {url} refused the request: {detail}", status_code=status)

    def _call(self, operation: Operation, payload: Optional[Dict[str, Any]] = None) -> ApiResponse:
        token, claims = self.current_token()
        endpoint = self.router.endpoint(claims, operation)
        url = self.router.resolve(claims, operation)
        return self._send(endpoint.method, url, token, payload)

    # -- operations -----------------------------------------------------

    def get_profile(self) -> ApiResponse:
        return self._call(Operation.READ_PROFILE)

    def update_profile(
        self,
        profile: Optional[Mapping[str, Any]],
        address: Optional[Mapping[str, Any]],
    ) -> ApiResponse:
        """PUT ``{profile, address}`` to the account's profile-update endpoint."""
        update = ProfileUpdate(profile=dict(profile or {}), address=dict(address or {}))
        missing = update.missing_sections()
        if missing:
            raise RequestValidationError(
                f"profile update requires {' and '.join(missing)} data"
            )
        return self._call(Operation.UPDATE_PROFILE, update.to_payload())

    def update_address(self, address: Optional[Mapping[str, Any]]) -> ApiResponse:
        if not address:
            raise RequestValidationError("address update requires address data")
        return self._call(
            Operation.UPDATE_ADDRESS,
            {"address": compact(address)},
        )

    def request(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        """Send a request to a pre-built URL, routed by the stored token.

        Profile URLs pointing at the wrong family are rewritten here, at the
        call site, before the request is constructed.
        """
        token, claims = self.current_token()
        routed = self.router.rewrite_url(url, claims)
        return self._send(method.upper(), routed, token, payload)
