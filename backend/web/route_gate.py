"""
Route gate: allow/redirect decisions made from the session cookie alone.

The gate runs before any handler and cannot look anything up; it only knows
whether the cookie is present and, for public pages, which role it names.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from identity_access.domain import landing_path

from web.session_cache import MalformedSessionCookie, decode_user

LOGIN_PATH = "/login"
PUBLIC_PATHS = frozenset({"/", LOGIN_PATH})
GATED_PREFIXES = ("/dashboard", "/tasks", "/groups", "/admin")


@dataclass(frozen=True)
class GateDecision:
    redirect_to: Optional[str] = None
    clear_cookie: bool = False

    @property
    def allowed(self) -> bool:
        return self.redirect_to is None


ALLOW = GateDecision()


def is_gated_path(path: str) -> bool:
    """True for the paths the gate applies to: /, /login and the app sections."""
    if path in PUBLIC_PATHS:
        return True
    return any(path == p or path.startswith(p + "/") for p in GATED_PREFIXES)


def decide_route(path: str, cookie: Optional[str]) -> GateDecision:
    """Decide what happens to a request for `path` given the raw session cookie."""
    is_public = path in PUBLIC_PATHS
    if not cookie:
        return ALLOW if is_public else GateDecision(redirect_to=LOGIN_PATH)
    if is_public:
        try:
            user = decode_user(cookie)
        except MalformedSessionCookie:
            return GateDecision(redirect_to=LOGIN_PATH, clear_cookie=True)
        return GateDecision(redirect_to=landing_path(user.role))
    return ALLOW
