"""
Shared authentication utilities.

Why:
    The session cookie is written by the login routes and cleared by the
    route gate and the logout route. Keeping the environment-dependent cookie
    policy in one helper keeps those call sites consistent.

Design:
    Framework-agnostic and pure: accepts an environment string and returns the
    cookie flags. Callers decide where the environment comes from.
"""

from __future__ import annotations

_LOCAL_ENVIRONMENTS = frozenset({"dev", "development", "local", "test"})


def is_local_environment(environment: str) -> bool:
    return (environment or "").strip().lower() in _LOCAL_ENVIRONMENTS


def cookie_opts(environment: str) -> dict:
    """Return cookie flags for the given environment.

    Returns a mapping with keys:
      - secure: False only for local development (plain http://localhost)
      - samesite: "strict"  # no sign-in redirects cross sites; the cookie
        never needs to travel on cross-site navigations
    """
    return {"secure": not is_local_environment(environment), "samesite": "strict"}
