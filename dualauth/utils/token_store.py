"""
Key-value storage for client-side credentials.

The login flow, profile client and cleanup pass all take a store
explicitly instead of reaching for ambient global state, so they can run
against an in-memory dict in tests and a JSON file from the CLI.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from dualauth.utils.errors import DualAuthError, ErrorCategory

logger = logging.getLogger(__name__)

CANONICAL_TOKEN_KEY = "auth_token"

# Keys historically used for the bearer token, in lookup order after the
# canonical one.
LEGACY_TOKEN_KEYS = (
    "access_token",
    "token",
    "jwt_token",
    "user_token",
    "session_token",
    "google_token",
)

CREDENTIAL_KEYS = (CANONICAL_TOKEN_KEY,) + LEGACY_TOKEN_KEYS + ("refresh_token",)

# Everything a forced re-authentication must wipe.
AUTH_KEYS = CREDENTIAL_KEYS + (
    "user",
    "user_data",
    "user_profile",
    "session_data",
    "auth_data",
    "login_data",
)


@runtime_checkable
class TokenStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class MemoryTokenStore:
    """Dict-backed store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def as_dict(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileTokenStore:
    """Store persisted as a flat JSON object, rewritten atomically on change."""

    def __init__(self, path: os.PathLike):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise DualAuthError(
                f"token store {self.path} is not valid JSON: {e}",
                category=ErrorCategory.CONFIGURATION,
            )
        if not isinstance(data, dict):
            raise DualAuthError(
                f"token store {self.path} must contain a JSON object",
                category=ErrorCategory.CONFIGURATION,
            )
        # Values other than strings are kept as their JSON text
        return {
            str(k): v if isinstance(v, str) else json.dumps(v)
            for k, v in data.items()
        }

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=".tokens-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)
        logger.debug("Stored credential key", extra={"key": key, "path": str(self.path)})

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key not in data:
                return
            del data[key]
            self._save(data)
        logger.debug("Removed credential key", extra={"key": key, "path": str(self.path)})

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._load().keys())


def remove_keys(store: TokenStore, keys: Iterable[str]) -> List[str]:
    """Remove every present key, returning the ones that existed."""
    removed = []
    for key in keys:
        if store.get(key) is not None:
            store.remove(key)
            removed.append(key)
    return removed
