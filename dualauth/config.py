"""Environment-driven configuration for dualauth.

Every setting has a sensible default and can be overridden through a
``DUALAUTH_*`` environment variable or by passing values explicitly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dualauth.utils.errors import DualAuthError, ErrorCategory

SEPARATED_SUFFIX = "-separated"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise DualAuthError(
        f"{name} must be a boolean, got {value!r}",
        category=ErrorCategory.CONFIGURATION,
    )


def default_store_path() -> Path:
    return Path.home() / ".config" / "dualauth" / "tokens.json"


@dataclass
class DualAuthConfig:
    """Client configuration."""

    base_url: str = "http://localhost:3000"
    timeout: float = 10.0
    social_provider: str = "google"
    store_path: Path = field(default_factory=default_store_path)
    require_exp: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        self.store_path = Path(self.store_path).expanduser()
        if self.timeout <= 0:
            raise DualAuthError(
                "DUALAUTH_TIMEOUT must be positive",
                category=ErrorCategory.CONFIGURATION,
            )
        if not self.social_provider or SEPARATED_SUFFIX in self.social_provider:
            raise DualAuthError(
                "DUALAUTH_SOCIAL_PROVIDER must be a bare provider name such as 'google'",
                category=ErrorCategory.CONFIGURATION,
            )

    @property
    def separated_tag(self) -> str:
        return f"{self.social_provider}{SEPARATED_SUFFIX}"

    @property
    def login_path(self) -> str:
        return f"/api/auth/login/{self.separated_tag}"

    @property
    def login_url(self) -> str:
        return f"{self.base_url}{self.login_path}"

    @classmethod
    def from_env(cls, **overrides: Optional[object]) -> "DualAuthConfig":
        """Build a config from the environment; non-None overrides win."""
        timeout_raw = os.getenv("DUALAUTH_TIMEOUT", "10")
        try:
            timeout = float(timeout_raw)
        except ValueError:
            raise DualAuthError(
                f"DUALAUTH_TIMEOUT must be a number, got {timeout_raw!r}",
                category=ErrorCategory.CONFIGURATION,
            )

        values = {
            "base_url": os.getenv("DUALAUTH_BASE_URL", "http://localhost:3000"),
            "timeout": timeout,
            "social_provider": os.getenv("DUALAUTH_SOCIAL_PROVIDER", "google"),
            "store_path": Path(
                os.getenv("DUALAUTH_STORE_PATH", str(default_store_path()))
            ),
            "require_exp": _parse_bool(
                "DUALAUTH_REQUIRE_EXP", os.getenv("DUALAUTH_REQUIRE_EXP", "false")
            ),
            "log_level": os.getenv("DUALAUTH_LOG_LEVEL", "INFO").upper(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
