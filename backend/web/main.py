"GT Staff Hub"
from __future__ import annotations

from pathlib import Path
import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from identity_access.profiles import InMemoryProfileStore
from identity_access.profiles_firestore import FirestoreProfileStore
from identity_access.provider import IdentityToolkitClient, load_identity_toolkit_config
from identity_access.roles import RoleOverrides, RoleResolver
from identity_access.session import build_auth_state
from identity_access.stores import SessionStore

from web import config as _cfg
from web.route_gate import decide_route, is_gated_path
from web.session_cache import SESSION_COOKIE_NAME, SESSION_ID_COOKIE_NAME, SessionCache


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest; tests provide their own env.
    - Opt-out via GT_ENABLE_DOTENV=false (default true outside pytest).
    """
    if _under_pytest():
        return False
    flag = (os.getenv("GT_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Fail fast on insecure production configuration.
_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return _cfg.current_environment()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


logger = logging.getLogger("gtstaff.web")
SETTINGS = AuthSettings()

app = FastAPI(title="GT Staff Hub", description="School staff portal", version="0.1.0")

static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

# --- Identity & Session Wiring --------------------------------------------------


def build_profile_store():
    """Return the profile store selected by PROFILE_STORE_BACKEND."""
    backend = _cfg.profile_store_backend()
    if backend == "firestore":
        return FirestoreProfileStore(
            project_id=os.getenv("FIREBASE_PROJECT_ID", ""),
            api_key=os.getenv("FIREBASE_API_KEY") or None,
        )
    if backend != "memory":
        logger.warning("Unknown PROFILE_STORE_BACKEND %r, using memory", backend)
    return InMemoryProfileStore()


PROVIDER_CFG = load_identity_toolkit_config()
PROVIDER = IdentityToolkitClient(PROVIDER_CFG)
PROFILE_STORE = build_profile_store()
RESOLVER = RoleResolver(
    PROFILE_STORE,
    RoleOverrides.from_env(),
    timeout_seconds=_cfg.lookup_timeout_seconds(),
)
AUTH_STATE = build_auth_state(RESOLVER)
SESSION_STORE = SessionStore()
SESSION_CACHE = SessionCache(lambda: SETTINGS.environment, SESSION_STORE)

# --- Middleware -----------------------------------------------------------------


@app.middleware("http")
async def route_gate(request: Request, call_next):
    """Attach the request-scoped session and apply the cookie-only route gate."""
    raw = request.cookies.get(SESSION_COOKIE_NAME)
    request.state.session = SESSION_CACHE.load(request.cookies.get(SESSION_ID_COOKIE_NAME))
    path = request.url.path
    if is_gated_path(path):
        decision = decide_route(path, raw)
        if not decision.allowed:
            resp = RedirectResponse(url=decision.redirect_to, status_code=302)
            resp.headers["Cache-Control"] = "private, no-store"
            if decision.clear_cookie:
                logger.info("Cleared malformed session cookie")
                SESSION_CACHE.clear(resp, request.state.session.session_id)
            return resp
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    if SETTINGS.environment in _cfg.PROD_LIKE_ENVIRONMENTS:
        # Google Identity Services renders the federated sign-in button.
        csp = (
            "default-src 'self'; script-src 'self' https://accounts.google.com/gsi/client; "
            "style-src 'self' https://accounts.google.com/gsi/style; img-src 'self' data: https:; frame-src https://accounts.google.com/gsi/; "
            "connect-src 'self' https://accounts.google.com/gsi/;"
        )
    else:
        csp = (
            "default-src 'self'; script-src 'self' 'unsafe-inline' https://accounts.google.com/gsi/client; "
            "style-src 'self' 'unsafe-inline' https://accounts.google.com/gsi/style; img-src 'self' data: https:; frame-src https://accounts.google.com/gsi/; "
            "connect-src 'self' https://accounts.google.com/gsi/;"
        )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    if SETTINGS.environment in _cfg.PROD_LIKE_ENVIRONMENTS:
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Routes ---------------------------------------------------------------------

from web.routes.auth import auth_router  # noqa: E402
from web.routes.pages import pages_router  # noqa: E402

app.include_router(auth_router)
app.include_router(pages_router)


@app.get("/health")
async def health_check():
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})


@app.get("/api/me")
async def get_me(request: Request):
    session = request.state.session
    if session.user is None:
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers={"Cache-Control": "private, no-store"})
    return JSONResponse(session.user.to_dict(), headers={"Cache-Control": "private, no-store"})
