"""
Configuration and startup security checks for GT Staff Hub.

Why: A staff portal must not be deployed with development shortcuts left on
(in-memory profiles, emulator hosts, bootstrap admin overrides). This module
provides a single guard that enforces minimal production safety constraints
without burdening local development.

The function simply reads environment variables and raises `SystemExit` on
fatal misconfiguration.
"""
from __future__ import annotations

import os

PROD_LIKE_ENVIRONMENTS = frozenset({"prod", "production", "stage", "staging"})


def current_environment() -> str:
    return (os.getenv("GT_ENV", "dev") or "dev").strip().lower()


def _is_prod_like(env: str) -> bool:
    return (env or "").lower() in PROD_LIKE_ENVIRONMENTS


def _flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes")


def lookup_timeout_seconds() -> float:
    """Deadline for the profile lookup during sign-in (GT_ROLE_LOOKUP_TIMEOUT)."""
    raw = (os.getenv("GT_ROLE_LOOKUP_TIMEOUT") or "").strip()
    try:
        value = float(raw) if raw else 5.0
    except ValueError:
        value = 5.0
    return value if value > 0 else 5.0


def profile_store_backend() -> str:
    default = "firestore" if _is_prod_like(current_environment()) else "memory"
    return (os.getenv("PROFILE_STORE_BACKEND", default) or default).strip().lower()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (production/staging only):
    - Firebase API key and project id are set and not placeholders.
    - Profiles are read from Firestore, not from the in-memory store.
    - No emulator hosts are configured.
    - Bootstrap admin overrides are only accepted with an explicit opt-in.
    """
    env = current_environment()
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    api_key = (os.getenv("FIREBASE_API_KEY") or "").strip()
    if not api_key or api_key.upper().startswith("CHANGE_ME"):
        raise SystemExit("Refusing to start: FIREBASE_API_KEY is unset or a placeholder in production.")

    project_id = (os.getenv("FIREBASE_PROJECT_ID") or "").strip()
    if not project_id:
        raise SystemExit("Refusing to start: FIREBASE_PROJECT_ID is unset in production.")

    if profile_store_backend() != "firestore":
        raise SystemExit("Refusing to start: PROFILE_STORE_BACKEND must be 'firestore' in production/staging.")

    for var in ("FIREBASE_AUTH_EMULATOR_HOST", "FIRESTORE_EMULATOR_HOST"):
        if (os.getenv(var) or "").strip():
            raise SystemExit(f"Refusing to start: {var} must not be set in production/staging.")

    overrides = (os.getenv("GT_ADMIN_BYPASS") or "").strip() or (os.getenv("GT_ADMIN_FALLBACK_EMAILS") or "").strip()
    if overrides and not _flag("GT_ALLOW_ADMIN_OVERRIDES"):
        raise SystemExit(
            "Refusing to start: admin role overrides are configured in production. "
            "Provision admins with `python -m tools.provision_admin` or set GT_ALLOW_ADMIN_OVERRIDES=true."
        )


def google_client_id() -> str | None:
    """OAuth client id for the Google sign-in button; None hides the button."""
    return (os.getenv("GOOGLE_OAUTH_CLIENT_ID") or "").strip() or None
