"""
Request and response models for the profile and login endpoints.

Both endpoint families share one envelope:
``{success, token?, user?, message?}``, sometimes with the payload nested
under ``data``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

PROFILE_FIELDS = ("nome", "email", "cpf", "telefone", "data_nascimento")
ADDRESS_FIELDS = (
    "nome_endereco",
    "cep",
    "logradouro",
    "numero",
    "bairro",
    "cidade",
    "estado",
    "complemento",
)


@dataclass
class LoginIdentity:
    """Identity fields the separated login endpoint expects."""

    email: str
    sub: Optional[str] = None
    name: Optional[str] = None
    email_verified: bool = True
    picture: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.email or "@" not in self.email:
            raise ValueError(f"invalid email for login: {self.email!r}")
        # The backend keys separated accounts by sub; email is the fallback
        if not self.sub:
            self.sub = self.email
        if not self.name:
            self.name = self.email.split("@")[0]

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "email": self.email,
            "sub": self.sub,
            "name": self.name,
            "email_verified": self.email_verified,
        }
        if self.picture:
            payload["picture"] = self.picture
        return payload


@dataclass
class ApiResponse:
    """Parsed response envelope."""

    status_code: int
    success: bool
    message: Optional[str] = None
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, status_code: int, body: Any) -> "ApiResponse":
        if not isinstance(body, Mapping):
            return cls(
                status_code=status_code,
                success=200 <= status_code < 300,
                raw={"body": body},
            )
        data = body.get("data") if isinstance(body.get("data"), Mapping) else None
        user = body.get("user")
        if user is None and data is not None:
            user = data.get("user") or data.get("profile")
        return cls(
            status_code=status_code,
            success=bool(body.get("success", 200 <= status_code < 300)),
            message=body.get("message") or body.get("error"),
            token=body.get("token"),
            user=dict(user) if isinstance(user, Mapping) else None,
            data=dict(data) if data is not None else None,
            raw=dict(body),
        )

    @property
    def profile(self) -> Optional[Dict[str, Any]]:
        if self.data and isinstance(self.data.get("profile"), Mapping):
            return dict(self.data["profile"])
        if isinstance(self.raw.get("profile"), Mapping):
            return dict(self.raw["profile"])
        return self.user

    @property
    def address(self) -> Optional[Dict[str, Any]]:
        for source in (self.data or {}, self.raw):
            if isinstance(source.get("address"), Mapping):
                return dict(source["address"])
        return None


def compact(values: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v not in (None, "")}


@dataclass
class ProfileUpdate:
    """Body of a profile-update request: ``{profile: {...}, address: {...}}``."""

    profile: Dict[str, Any]
    address: Dict[str, Any]

    def missing_sections(self) -> list:
        missing = []
        if not self.profile:
            missing.append("profile")
        if not self.address:
            missing.append("address")
        return missing

    def to_payload(self) -> Dict[str, Any]:
        return {"profile": compact(self.profile), "address": compact(self.address)}
