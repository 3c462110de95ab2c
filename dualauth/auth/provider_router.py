"""Map token claims to the REST resource family a profile request must target.

Standard accounts live under ``/api/users``; separated social-login accounts
live under a parallel family (``/api/google-users`` for Google) with the
same shape. The provider claim is authoritative: a request is never retried
against the other family.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from dualauth.auth.token_auth import ClaimsLike, as_claims
from dualauth.config import SEPARATED_SUFFIX
from dualauth.utils.errors import RoutingError

logger = logging.getLogger(__name__)

DEFAULT_SEPARATED_TAG = "google-separated"


class Operation(str, Enum):
    READ_PROFILE = "read-profile"
    UPDATE_PROFILE = "update-profile"
    UPDATE_ADDRESS = "update-address"


class EndpointFamily(str, Enum):
    STANDARD = "standard"
    SEPARATED = "separated"


@dataclass(frozen=True)
class Endpoint:
    method: str
    path: str


STANDARD_PREFIX = "/api/users"

# Paths below each family prefix. The standard backend only serves
# PUT /addresses/:id; /api/users/address is an assumed mirror of the
# separated route, so address updates on a standard account may surface
# as a RoutingError (404) until the backend exposes it.
_OPERATION_SUFFIXES: Dict[Operation, Endpoint] = {
    Operation.READ_PROFILE: Endpoint("GET", "/profile"),
    Operation.UPDATE_PROFILE: Endpoint("PUT", "/profile-update"),
    Operation.UPDATE_ADDRESS: Endpoint("PUT", "/address"),
}


def separated_prefix(separated_tag: str) -> str:
    """``google-separated`` -> ``/api/google-users``."""
    social = separated_tag[: -len(SEPARATED_SUFFIX)] if separated_tag.endswith(
        SEPARATED_SUFFIX
    ) else separated_tag
    return f"/api/{social}-users"


def _coerce_operation(operation: Union[Operation, str]) -> Operation:
    try:
        return Operation(operation)
    except ValueError:
        raise RoutingError(f"unknown profile operation: {operation!r}")


def family_for(claims: ClaimsLike, separated_tag: str = DEFAULT_SEPARATED_TAG) -> EndpointFamily:
    parsed = as_claims(claims)
    if parsed.provider and (
        parsed.provider == separated_tag or parsed.provider.endswith(SEPARATED_SUFFIX)
    ):
        return EndpointFamily.SEPARATED
    return EndpointFamily.STANDARD


def endpoint_for(
    claims: ClaimsLike,
    operation: Union[Operation, str],
    separated_tag: str = DEFAULT_SEPARATED_TAG,
) -> Endpoint:
    op = _coerce_operation(operation)
    suffix = _OPERATION_SUFFIXES[op]

    if family_for(claims, separated_tag) is EndpointFamily.SEPARATED:
        # One separated family per backend, whatever the social prefix
        prefix = separated_prefix(separated_tag)
    else:
        prefix = STANDARD_PREFIX
    return Endpoint(suffix.method, f"{prefix}{suffix.path}")


def resolve_endpoint(
    claims: ClaimsLike,
    operation: Union[Operation, str],
    base_url: str = "",
    separated_tag: str = DEFAULT_SEPARATED_TAG,
) -> str:
    """Return the URL ``operation`` must use for the account in ``claims``."""
    endpoint = endpoint_for(claims, operation, separated_tag)
    return f"{base_url.rstrip('/')}{endpoint.path}"


class ProviderRouter:
    """Resolve and rewrite profile URLs for a given backend."""

    def __init__(self, base_url: str = "", separated_tag: str = DEFAULT_SEPARATED_TAG):
        self.base_url = base_url.rstrip("/")
        self.separated_tag = separated_tag

    @classmethod
    def from_config(cls, config) -> "ProviderRouter":
        return cls(base_url=config.base_url, separated_tag=config.separated_tag)

    def family_for(self, claims: ClaimsLike) -> EndpointFamily:
        return family_for(claims, self.separated_tag)

    def endpoint(self, claims: ClaimsLike, operation: Union[Operation, str]) -> Endpoint:
        return endpoint_for(claims, operation, self.separated_tag)

    def resolve(self, claims: ClaimsLike, operation: Union[Operation, str]) -> str:
        url = resolve_endpoint(claims, operation, self.base_url, self.separated_tag)
        logger.debug(
            "Resolved profile endpoint",
            extra={"operation": _coerce_operation(operation).value, "url": url},
        )
        return url

    def rewrite_url(self, url: str, claims: ClaimsLike) -> str:
        """Point an already-built profile URL at the family ``claims`` belongs to.

        URLs outside either profile family are returned unchanged.
        """
        parts = urlsplit(url)
        operation = self._operation_for_path(parts.path)
        if operation is None:
            return url

        target = self.endpoint(claims, operation).path
        if target == parts.path:
            return url

        logger.info(
            "Rewrote profile URL to the account's endpoint family",
            extra={"from": parts.path, "to": target},
        )
        return urlunsplit(parts._replace(path=target))

    def _operation_for_path(self, path: str) -> Optional[Operation]:
        prefixes = (STANDARD_PREFIX, separated_prefix(self.separated_tag))
        for op, suffix in _OPERATION_SUFFIXES.items():
            for prefix in prefixes:
                if path.rstrip("/") == f"{prefix}{suffix.path}":
                    return op
        return None
