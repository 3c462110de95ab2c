"""Tests for environment-driven configuration (config.py)."""

from pathlib import Path

import pytest

from dualauth.config import DualAuthConfig
from dualauth.utils.errors import DualAuthError, ErrorCategory


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "DUALAUTH_BASE_URL",
        "DUALAUTH_TIMEOUT",
        "DUALAUTH_SOCIAL_PROVIDER",
        "DUALAUTH_STORE_PATH",
        "DUALAUTH_REQUIRE_EXP",
        "DUALAUTH_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDualAuthConfig:
    def test_defaults(self):
        config = DualAuthConfig.from_env()
        assert config.base_url == "http://localhost:3000"
        assert config.timeout == 10.0
        assert config.separated_tag == "google-separated"
        assert config.login_url == "http://localhost:3000/api/auth/login/google-separated"
        assert config.require_exp is False
        assert config.store_path.name == "tokens.json"

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DUALAUTH_BASE_URL", "https://api.example.com/")
        monkeypatch.setenv("DUALAUTH_TIMEOUT", "2.5")
        monkeypatch.setenv("DUALAUTH_SOCIAL_PROVIDER", "apple")
        monkeypatch.setenv("DUALAUTH_STORE_PATH", str(tmp_path / "t.json"))
        monkeypatch.setenv("DUALAUTH_REQUIRE_EXP", "yes")
        monkeypatch.setenv("DUALAUTH_LOG_LEVEL", "debug")

        config = DualAuthConfig.from_env()

        assert config.base_url == "https://api.example.com"
        assert config.timeout == 2.5
        assert config.login_path == "/api/auth/login/apple-separated"
        assert config.store_path == tmp_path / "t.json"
        assert config.require_exp is True
        assert config.log_level == "DEBUG"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("DUALAUTH_BASE_URL", "https://env.example.com")
        config = DualAuthConfig.from_env(base_url="http://cli.test", store_path=None)
        assert config.base_url == "http://cli.test"

    def test_store_path_expands_user(self):
        config = DualAuthConfig(store_path="~/tokens.json")
        assert config.store_path == Path.home() / "tokens.json"

    @pytest.mark.parametrize(
        "name, value",
        [
            ("DUALAUTH_TIMEOUT", "soon"),
            ("DUALAUTH_TIMEOUT", "0"),
            ("DUALAUTH_REQUIRE_EXP", "maybe"),
            ("DUALAUTH_SOCIAL_PROVIDER", "google-separated"),
        ],
    )
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(DualAuthError) as exc_info:
            DualAuthConfig.from_env()
        assert exc_info.value.category == ErrorCategory.CONFIGURATION
