"""
Identity domain types and small helpers shared by the resolver, the session
cache and the web layer.

Why:
- Centralize the known roles and landing paths so the route gate, the login
  flow and the navigation agree on them.
- Keep the serialized user shape (`{id, name, email, role, photoURL?}`) in one
  place because the session cookie depends on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
import re

# Known roles. Profile documents may carry other values; those are kept
# verbatim by the resolver and only logged.
ALLOWED_ROLES = frozenset({"admin", "manager", "teacher", "principal"})

ROLE_LABELS = {
    "admin": "Administrator",
    "manager": "Manager",
    "teacher": "Teacher",
    "principal": "Principal",
}


@dataclass(frozen=True)
class Identity:
    """Account reference returned by the auth provider after sign-in."""

    uid: str
    email: str
    display_name: str = ""
    photo_url: Optional[str] = None
    id_token: Optional[str] = None


@dataclass(frozen=True)
class UserRecord:
    """The application's role-bearing view of a signed-in user."""

    id: str
    name: str
    email: str
    role: Optional[str]
    photo_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "email": self.email, "role": self.role}
        if self.photo_url:
            data["photoURL"] = self.photo_url
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserRecord":
        role = data.get("role")
        photo = data.get("photoURL")
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            role=str(role) if role is not None else None,
            photo_url=str(photo) if photo else None,
        )


def landing_path(role: Optional[str]) -> str:
    """Where an already signed-in user is sent when opening a public page."""
    return "/dashboard" if role == "manager" else "/tasks"


def post_login_path(role: Optional[str]) -> str:
    """Where a user lands right after a successful sign-in."""
    if role == "admin":
        return "/admin"
    return landing_path(role)


_splitter = re.compile(r"[^A-Za-z0-9]+")


def humanize_identifier(s: str) -> str:
    """Turn an email/username into a display name ("jane.doe@x" -> "Jane Doe")."""
    if not s:
        return ""
    s = str(s)
    if "@" in s:
        s = s.split("@", 1)[0]
    parts = [p for p in _splitter.split(s) if p]
    if not parts:
        return ""
    return " ".join(p[:1].upper() + p[1:].lower() for p in parts)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


__all__ = [
    "ALLOWED_ROLES",
    "ROLE_LABELS",
    "Identity",
    "UserRecord",
    "landing_path",
    "post_login_path",
    "humanize_identifier",
    "normalize_email",
]
