"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, make `backend/` importable, and
reset the app's module-level wiring so a monkeypatch or environment override
in one test never leaks into the next.
"""
import os
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

# Keep the import-time wiring of web.main deterministic (dev, in-memory store,
# no overrides) regardless of the developer's shell.
for _var in (
    "GT_ENV",
    "PROFILE_STORE_BACKEND",
    "GT_ADMIN_BYPASS",
    "GT_ADMIN_FALLBACK_EMAILS",
    "GT_ALLOW_ADMIN_OVERRIDES",
    "FIREBASE_AUTH_EMULATOR_HOST",
    "FIRESTORE_EMULATOR_HOST",
    "GOOGLE_OAUTH_CLIENT_ID",
    "GT_TRUST_PROXY",
):
    os.environ.pop(_var, None)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_environment_toggles(monkeypatch: pytest.MonkeyPatch):
    """Default every test to a dev environment without overrides."""
    for var in (
        "GT_ENV",
        "PROFILE_STORE_BACKEND",
        "GT_ROLE_LOOKUP_TIMEOUT",
        "GT_ADMIN_BYPASS",
        "GT_ADMIN_FALLBACK_EMAILS",
        "GT_ALLOW_ADMIN_OVERRIDES",
        "FIREBASE_AUTH_EMULATOR_HOST",
        "FIRESTORE_EMULATOR_HOST",
        "GOOGLE_OAUTH_CLIENT_ID",
        "GT_TRUST_PROXY",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_settings_environment_override():
    """Reset main.SETTINGS.override_environment between tests.

    Some tests force `prod` semantics via `main.SETTINGS._env_override`; a
    leftover override would flip cookie flags in unrelated tests.
    """
    from web import main

    main.SETTINGS.override_environment(None)
    yield
    main.SETTINGS.override_environment(None)
