"""Tests for the dualauth command line (cli/main.py)."""

import io
import json

import pytest
import requests

from dualauth.cli.main import (
    EXIT_OK,
    EXIT_ROUTING,
    EXIT_TRANSPORT,
    EXIT_UNAUTHORIZED,
    EXIT_USAGE,
    create_parser,
    main,
)
from dualauth.utils.token_store import JsonFileTokenStore

from .conftest import BASE_URL, SECRET


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    for name in ("DUALAUTH_BASE_URL", "DUALAUTH_STORE_PATH", "DUALAUTH_REQUIRE_EXP"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path / "tokens.json"


@pytest.fixture
def run(store_path):
    def _run(*args):
        return main(["--base-url", BASE_URL, "--store", str(store_path), "--log-level", "warning", *args])

    return _run


class TestParser:
    def test_commands(self):
        args = create_parser().parse_args(["update-address", "--field", "cep=1", "--field", "cidade=Recife"])
        assert args.command == "update-address"
        assert args.field == ["cep=1", "cidade=Recife"]

    def test_no_command_prints_help(self, capsys):
        assert main([]) == EXIT_USAGE
        assert "usage" in capsys.readouterr().out


class TestInspect:
    def test_separated_token(self, run, separated_token, capsys):
        assert run("inspect", separated_token) == EXIT_OK
        out = capsys.readouterr().out
        assert "Family: separated" in out
        assert f"GET {BASE_URL}/api/google-users/profile" in out
        assert f"PUT {BASE_URL}/api/google-users/address" in out

    def test_bearer_prefix_and_signature(self, run, standard_token, capsys):
        assert run("inspect", f"Bearer {standard_token}", "--secret", SECRET) == EXIT_OK
        out = capsys.readouterr().out
        assert "Family: standard" in out
        assert "Signature: valid" in out

    def test_token_from_stdin(self, run, separated_token, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO(separated_token + "\n"))
        assert run("inspect", "-") == EXIT_OK
        assert "google-separated" in capsys.readouterr().out

    def test_placeholder(self, run, capsys):
        assert run("inspect", "undefined") == EXIT_USAGE
        assert "Not a usable JWT" in capsys.readouterr().out

    def test_expired_signature(self, run, expired_token, capsys):
        assert run("inspect", expired_token, "--secret", SECRET) == EXIT_UNAUTHORIZED
        assert "Expired: True" in capsys.readouterr().out


class TestCleanup:
    def test_removes_placeholders(self, run, store_path, separated_token, capsys):
        store = JsonFileTokenStore(store_path)
        store.set("auth_token", separated_token)
        store.set("access_token", "undefined")

        assert run("cleanup") == EXIT_OK

        report = json.loads(capsys.readouterr().out)
        assert report["cleaned"] == 1
        assert store.keys() == ["auth_token"]

    def test_all(self, run, store_path, separated_token, capsys):
        store = JsonFileTokenStore(store_path)
        store.set("auth_token", separated_token)
        store.set("user", "{}")

        assert run("cleanup", "--all") == EXIT_OK
        assert json.loads(capsys.readouterr().out)["cleaned"] == 2
        assert store.keys() == []

    def test_dry_run_leaves_store(self, run, store_path, capsys):
        store = JsonFileTokenStore(store_path)
        store.set("token", "undefined")

        assert run("cleanup", "--dry-run") == EXIT_OK

        report = json.loads(capsys.readouterr().out)
        assert report["invalid"][0]["key"] == "token"
        assert store.get("token") == "undefined"

    def test_corrupt_store_file(self, run, store_path, capsys):
        store_path.write_text("{oops")
        assert run("cleanup") == EXIT_USAGE
        assert json.loads(capsys.readouterr().out)["category"] == "configuration"


class TestProfileCommands:
    def test_login_and_profile(self, run, store_path, backend, capsys):
        assert run("login", "--email", "a@x.com", "--name", "A") == EXIT_OK
        assert "Verified against" in capsys.readouterr().out
        assert JsonFileTokenStore(store_path).get("auth_token")

        assert run("profile") == EXIT_OK
        assert json.loads(capsys.readouterr().out)["profile"]["email"] == "a@x.com"

    def test_update_address(self, run, store_path, separated_token, backend, capsys):
        JsonFileTokenStore(store_path).set("auth_token", separated_token)

        assert run("update-address", "--field", "cidade=Recife") == EXIT_OK
        assert backend.separated_users["g-1"]["address"] == {"cidade": "Recife"}
        assert backend.calls == [("PUT", "/api/google-users/address")]

    def test_bad_field(self, run, store_path, separated_token):
        JsonFileTokenStore(store_path).set("auth_token", separated_token)
        assert run("update-address", "--field", "cidade") == EXIT_USAGE

    def test_profile_without_token(self, run, capsys):
        assert run("profile") == EXIT_UNAUTHORIZED
        assert json.loads(capsys.readouterr().out)["success"] is False

    def test_profile_routing_error(self, run, store_path, make_token, backend):
        JsonFileTokenStore(store_path).set("auth_token", make_token(userId="nobody"))
        assert run("profile") == EXIT_ROUTING

    def test_profile_transport_error(self, run, store_path, separated_token, http_mock):
        JsonFileTokenStore(store_path).set("auth_token", separated_token)
        http_mock.get(f"{BASE_URL}/api/google-users/profile", exc=requests.exceptions.ConnectionError)
        assert run("profile") == EXIT_TRANSPORT


class TestUtilities:
    def test_hash_password(self, run, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("s3cret\n"))
        assert run("hash-password") == EXIT_OK
        assert capsys.readouterr().out.startswith("$2b$12$")

    def test_mint_then_inspect(self, run, capsys):
        assert run(
            "mint", "--provider", "google-separated", "--email", "a@x.com",
            "--user-id", "g-9", "--secret", SECRET,
        ) == EXIT_OK
        token = capsys.readouterr().out.strip()

        assert run("inspect", token, "--secret", SECRET) == EXIT_OK
        out = capsys.readouterr().out
        assert '"googleUserId": "g-9"' in out
        assert "/api/google-users/profile" in out

    def test_mint_requires_secret(self, run, monkeypatch):
        monkeypatch.delenv("DUALAUTH_JWT_SECRET", raising=False)
        assert run("mint", "--email", "a@x.com") == EXIT_USAGE
