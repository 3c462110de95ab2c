"""Token validation, claim decoding and endpoint routing."""

from .token_auth import (  # noqa: F401
    TokenClaims,
    decode_claims,
    is_expired,
    is_valid_token,
    sanitize_token,
)
from .provider_router import Operation, ProviderRouter, resolve_endpoint  # noqa: F401
