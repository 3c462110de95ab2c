"""Shared pytest fixtures for dualauth testing."""

import itertools
import time

import jwt
import pytest
import requests_mock

from dualauth.auth.provider_router import ProviderRouter
from dualauth.auth.token_auth import verify_token
from dualauth.config import DualAuthConfig
from dualauth.utils.errors import DualAuthError
from dualauth.utils.token_store import MemoryTokenStore

BASE_URL = "http://api.test"
SECRET = "dualauth-test-secret-0123456789abcdef"
SEPARATED_TAG = "google-separated"


# =============================================================================
# Token and storage fixtures
# =============================================================================


def encode_token(exp_in=3600, **claims):
    """Sign ``claims`` with the test secret; ``exp_in=None`` omits exp."""
    payload = dict(claims)
    now = int(time.time())
    payload.setdefault("iat", now)
    if exp_in is not None:
        payload["exp"] = now + exp_in
    return jwt.encode(payload, SECRET, algorithm="HS256")


@pytest.fixture
def make_token():
    return encode_token


@pytest.fixture
def standard_token():
    return encode_token(userId="std-1", email="std@x.com")


@pytest.fixture
def separated_token():
    return encode_token(provider=SEPARATED_TAG, googleUserId="g-1", email="a@x.com")


@pytest.fixture
def expired_token():
    return encode_token(exp_in=-3600, provider=SEPARATED_TAG, googleUserId="g-1", email="a@x.com")


@pytest.fixture
def store():
    return MemoryTokenStore()


@pytest.fixture
def config(tmp_path):
    return DualAuthConfig(base_url=BASE_URL, store_path=tmp_path / "tokens.json")


@pytest.fixture
def router(config):
    return ProviderRouter.from_config(config)


# =============================================================================
# Fake backend
# =============================================================================


class FakeBackend:
    """In-process stand-in for the two-family REST backend.

    Standard accounts are looked up by ``userId`` under ``/api/users``;
    separated accounts by ``googleUserId`` under ``/api/google-users``.
    A token presented to the wrong family is treated the way the real
    backend treats it: the lookup finds nothing.
    """

    def __init__(self, mocker, base_url=BASE_URL):
        self.mocker = mocker
        self.base_url = base_url
        self._ids = itertools.count(1)
        self.login_status = 200
        self.standard_users = {
            "std-1": {
                "profile": {"nome": "Standard", "email": "std@x.com"},
                "address": {"cep": "01000-000", "cidade": "Sao Paulo"},
            }
        }
        self.separated_users = {
            "g-1": {
                "profile": {"nome": "A", "email": "a@x.com"},
                "address": {},
            }
        }
        self._subjects = {"a@x.com": "g-1"}

    def install(self):
        self.mocker.post(f"{self.base_url}/api/auth/login/{SEPARATED_TAG}", json=self._login)
        for prefix, separated in (("/api/users", False), ("/api/google-users", True)):
            url = f"{self.base_url}{prefix}"
            self.mocker.get(f"{url}/profile", json=self._route(self._read, separated))
            self.mocker.put(f"{url}/profile-update", json=self._route(self._update, separated))
            self.mocker.put(f"{url}/address", json=self._route(self._address, separated))
        return self

    @property
    def calls(self):
        return [(r.method, r.path) for r in self.mocker.request_history]

    def _login(self, request, context):
        if self.login_status != 200:
            context.status_code = self.login_status
            return {"success": False, "message": "login disabled"}

        body = request.json()
        if not body.get("email") or not body.get("sub"):
            context.status_code = 400
            return {"success": False, "message": "email and sub are required"}

        user_id = self._subjects.get(body["sub"])
        if user_id is None:
            user_id = f"g-{next(self._ids) + 1}"
            self._subjects[body["sub"]] = user_id
            self.separated_users[user_id] = {
                "profile": {"nome": body.get("name"), "email": body["email"]},
                "address": {},
            }

        token = encode_token(provider=SEPARATED_TAG, googleUserId=user_id, email=body["email"])
        return {
            "success": True,
            "token": token,
            "user": {"id": user_id, "email": body["email"], "provider": SEPARATED_TAG},
        }

    def _route(self, handler, separated):
        def callback(request, context):
            header = request.headers.get("Authorization", "")
            if not header.startswith("Bearer "):
                context.status_code = 401
                return {"success": False, "message": "missing token"}
            try:
                claims = verify_token(header[len("Bearer "):], SECRET)
            except DualAuthError as e:
                context.status_code = 401
                return {"success": False, "message": e.message}

            if separated:
                if claims.get("provider") != SEPARATED_TAG:
                    context.status_code = 401
                    return {"success": False, "message": "not a separated account"}
                user = self.separated_users.get(claims.get("googleUserId"))
            else:
                user = self.standard_users.get(claims.get("userId"))

            if user is None:
                context.status_code = 404
                return {"success": False, "message": "user not found"}
            return handler(request, context, user)

        return callback

    def _read(self, request, context, user):
        return {
            "success": True,
            "data": {"profile": dict(user["profile"]), "address": dict(user["address"])},
        }

    def _update(self, request, context, user):
        body = request.json()
        if not body.get("profile") or not body.get("address"):
            context.status_code = 400
            return {"success": False, "message": "profile and address are required"}
        user["profile"].update(body["profile"])
        user["address"].update(body["address"])
        return {"success": True, "message": "Profile updated"}

    def _address(self, request, context, user):
        body = request.json()
        if not body.get("address"):
            context.status_code = 400
            return {"success": False, "message": "address is required"}
        user["address"].update(body["address"])
        return {"success": True, "message": "Address updated"}


@pytest.fixture
def http_mock():
    with requests_mock.Mocker() as m:
        yield m


@pytest.fixture
def backend(http_mock):
    return FakeBackend(http_mock).install()
