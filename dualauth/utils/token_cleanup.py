"""
Cleanup pass over client-side credential storage.

Removes placeholder values (``"undefined"``, ``"null"``, blanks), malformed
or expired tokens and corrupted JSON blobs left behind by earlier sessions.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dualauth.auth.token_auth import (
    is_placeholder,
    is_usable,
    is_valid_token,
    sanitize_token,
    try_decode_claims,
)
from dualauth.utils.error_sanitizer import token_preview
from dualauth.utils.token_store import (
    AUTH_KEYS,
    CANONICAL_TOKEN_KEY,
    CREDENTIAL_KEYS,
    LEGACY_TOKEN_KEYS,
    TokenStore,
    remove_keys,
)

logger = logging.getLogger(__name__)

AUTH_RELATED_MARKERS = ("auth", "token", "session", "user")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RemovedEntry:
    key: str
    reason: str
    preview: str


@dataclass
class CleanupReport:
    """Outcome of a cleanup pass."""

    removed: List[RemovedEntry] = field(default_factory=list)
    errors: int = 0
    checked: int = 0
    timestamp: str = field(default_factory=_now_iso)

    @property
    def cleaned(self) -> int:
        return len(self.removed)

    @property
    def removed_keys(self) -> List[str]:
        return [entry.key for entry in self.removed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cleaned": self.cleaned,
            "errors": self.errors,
            "checked": self.checked,
            "timestamp": self.timestamp,
            "keys": [
                {"key": e.key, "reason": e.reason, "value": e.preview}
                for e in self.removed
            ],
        }


@dataclass
class TokenValidationReport:
    valid: List[str] = field(default_factory=list)
    invalid: List[Dict[str, str]] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": list(self.valid),
            "invalid": list(self.invalid),
            "missing": list(self.missing),
            "timestamp": self.timestamp,
        }


def _is_token_key(key: str) -> bool:
    return "token" in key.lower()


def classify_value(
    key: str,
    value: Optional[str],
    now_epoch_seconds: Optional[float] = None,
    require_exp: bool = False,
) -> Optional[str]:
    """Return why ``value`` must be discarded, or None if it may stay."""
    if is_placeholder(value):
        return f"placeholder value: {value!r}"

    if _is_token_key(key):
        if not is_valid_token(value):
            return "malformed token"
        claims = try_decode_claims(value)
        if claims is None:
            return "undecodable token claims"
        if not is_usable(claims, now_epoch_seconds, require_exp=require_exp):
            return "expired token"
        return None

    if value.startswith("{") or value.startswith("["):
        try:
            json.loads(value)
        except json.JSONDecodeError:
            return "corrupted JSON"
    return None


def cleanup_tokens(
    store: TokenStore,
    extra_keys: Iterable[str] = (),
    now_epoch_seconds: Optional[float] = None,
    require_exp: bool = False,
) -> CleanupReport:
    """Remove every unusable credential entry from ``store``.

    Entries are removed as soon as they are found invalid.
    """
    now = time.time() if now_epoch_seconds is None else now_epoch_seconds
    report = CleanupReport()
    keys_to_check = list(dict.fromkeys(list(AUTH_KEYS) + list(extra_keys)))

    for key in keys_to_check:
        try:
            value = store.get(key)
            if value is None:
                continue
            report.checked += 1
            reason = classify_value(key, value, now, require_exp)
            if reason:
                store.remove(key)
                report.removed.append(RemovedEntry(key, reason, token_preview(value)))
                logger.info("Removed credential entry", extra={"key": key, "reason": reason})
        except OSError as e:
            report.errors += 1
            logger.error("Failed to check credential entry", extra={"key": key, "error": str(e)})

    # Catch keys written by other code paths under ad hoc names
    try:
        other_keys = [k for k in store.keys() if k not in keys_to_check]
    except OSError as e:
        report.errors += 1
        logger.error("Failed to list credential store keys", extra={"error": str(e)})
        other_keys = []

    for key in other_keys:
        if not any(marker in key.lower() for marker in AUTH_RELATED_MARKERS):
            continue
        value = store.get(key)
        report.checked += 1
        if is_placeholder(value):
            store.remove(key)
            report.removed.append(
                RemovedEntry(key, "auth-related key with placeholder value", str(value))
            )
            logger.info("Removed auth-related placeholder", extra={"key": key})

    logger.info(
        "Credential cleanup finished",
        extra={"cleaned": report.cleaned, "errors": report.errors},
    )
    return report


def clear_all_auth_data(store: TokenStore) -> List[str]:
    """Wipe every known credential and cached-user key."""
    removed = remove_keys(store, AUTH_KEYS)
    logger.info("Cleared all credential keys", extra={"removed": removed})
    return removed


def validate_current_tokens(
    store: TokenStore,
    now_epoch_seconds: Optional[float] = None,
    require_exp: bool = False,
) -> TokenValidationReport:
    """Classify stored entries without modifying the store."""
    report = TokenValidationReport()
    for key in AUTH_KEYS:
        value = store.get(key)
        if value is None:
            report.missing.append(key)
            continue
        reason = classify_value(key, value, now_epoch_seconds, require_exp)
        if reason:
            report.invalid.append(
                {"key": key, "value": token_preview(value), "reason": reason}
            )
        else:
            report.valid.append(key)
    return report


def find_stored_token(
    store: TokenStore,
    now_epoch_seconds: Optional[float] = None,
    require_exp: bool = False,
) -> Optional[Tuple[str, str]]:
    """First usable token across the canonical then legacy keys."""
    for key in (CANONICAL_TOKEN_KEY,) + LEGACY_TOKEN_KEYS:
        token = sanitize_token(store.get(key))
        if token is None:
            continue
        claims = try_decode_claims(token)
        if claims is None:
            continue
        if is_usable(claims, now_epoch_seconds, require_exp=require_exp):
            return key, token
    return None


def store_token(store: TokenStore, token: str) -> str:
    """Write ``token`` under the canonical key and drop the legacy keys.

    Returns the stored (trimmed) token. Raises ValueError for unusable input
    so a placeholder never reaches storage.
    """
    cleaned = sanitize_token(token)
    if cleaned is None:
        raise ValueError("refusing to store a malformed token")
    store.set(CANONICAL_TOKEN_KEY, cleaned)
    stale = [k for k in CREDENTIAL_KEYS if k not in (CANONICAL_TOKEN_KEY, "refresh_token")]
    removed = remove_keys(store, stale)
    logger.info(
        "Stored token under canonical key",
        extra={"key": CANONICAL_TOKEN_KEY, "token": token_preview(cleaned), "legacy_removed": removed},
    )
    return cleaned
