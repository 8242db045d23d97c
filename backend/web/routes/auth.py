"""
Authentication-related FastAPI routes (router-only module).

Why:
    Keep the sign-in/sign-out endpoints in one router. Every flow reports the
    new identity to `AuthState`, waits for role resolution, and only then
    mirrors the session into the cookie.

Notes:
    - Shared wiring (`PROVIDER`, `AUTH_STATE`, `SESSION_CACHE`, `SETTINGS`) is
      read from `web.main` inside the handlers so tests can monkeypatch it.
    - All responses carry `Cache-Control: private, no-store`.
    - Sign-in posts from another origin are refused with 403 (login CSRF).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from pydantic import BaseModel

from identity_access.domain import Identity, post_login_path
from identity_access.provider import CredentialRejectedError, IdentityProviderError
from identity_access.session import Session
from identity_access.tokens import IDTokenVerificationError, identity_from_claims, verify_id_token

from web import config as _cfg
from web.security import is_same_origin
from web.components import Layout, LoginForm

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("gtstaff.web.auth")

NO_STORE = {"Cache-Control": "private, no-store"}

MSG_MISSING_FIELDS = "Please enter both email and password"
MSG_MISSING_TOKEN = "Sign-in with the identity provider did not complete. Please try again."
MSG_REJECTED = "Invalid email or password."
MSG_DISABLED = "This account has been disabled. Please contact the school office."
MSG_TOO_MANY = "Too many failed attempts. Please try again later."
MSG_PROVIDER_DOWN = "Sign-in is temporarily unavailable. Please try again later."
MSG_NO_ROLE = "Your account has no staff role yet. Please contact an administrator."
MSG_DEGRADED = "Your profile could not be loaded right now. Please try again in a moment."


class SessionExchange(BaseModel):
    idToken: str


def _main():
    from web import main

    return main


def _rejection_message(code: str) -> str:
    if code == "user_disabled":
        return MSG_DISABLED
    if code == "too_many_attempts_try_later":
        return MSG_TOO_MANY
    return MSG_REJECTED


def _login_page(*, error: str | None = None, email: str = "", status_code: int = 200) -> HTMLResponse:
    form = LoginForm(error=error, email=email, google_client_id=_cfg.google_client_id())
    layout = Layout(title="Sign in", content=form.render(), show_nav=False, current_path="/login")
    return HTMLResponse(content=layout.render(), status_code=status_code, headers=NO_STORE)


def _no_role_status(session: Session) -> int:
    # A cleared session without resolution means resolution itself failed.
    resolution = session.resolution
    if resolution is None or resolution.degraded:
        return 503
    return 403


async def _sign_in(request: Request, identity: Identity) -> Session:
    """Report the sign-in and return the session once resolution has finished."""
    session: Session = request.state.session
    await _main().AUTH_STATE.signed_in(session, identity)
    return session


@auth_router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request):
    # The route gate already sent signed-in users to their landing page.
    return _login_page()


def _cross_origin_refusal() -> Response:
    return Response("", status_code=403, headers={**NO_STORE, "Vary": "Origin"})


@auth_router.post("/login")
async def login_submit(request: Request):
    # CSRF: enforce same-origin before touching inputs.
    if not is_same_origin(request):
        return _cross_origin_refusal()
    mod = _main()
    form = await request.form()
    email = str(form.get("email") or "").strip()
    password = str(form.get("password") or "")
    if not email or not password:
        return _login_page(error=MSG_MISSING_FIELDS, email=email, status_code=400)

    try:
        identity = mod.PROVIDER.sign_in_with_password(email=email, password=password)
    except CredentialRejectedError as exc:
        logger.info("Password sign-in rejected: %s", exc.code)
        return _login_page(error=_rejection_message(exc.code), email=email, status_code=401)
    except IdentityProviderError as exc:
        logger.warning("Password sign-in failed: %s", exc.code)
        return _login_page(error=MSG_PROVIDER_DOWN, email=email, status_code=503)

    session = await _sign_in(request, identity)
    return _finish_form_sign_in(session, email=email)


@auth_router.post("/login/federated")
async def login_federated(request: Request):
    if not is_same_origin(request):
        return _cross_origin_refusal()
    mod = _main()
    form = await request.form()
    id_token = str(form.get("id_token") or "").strip()
    provider_id = str(form.get("provider_id") or "").strip() or "google.com"
    if not id_token:
        return _login_page(error=MSG_MISSING_TOKEN, status_code=400)

    try:
        identity = mod.PROVIDER.sign_in_with_idp(id_token=id_token, provider_id=provider_id)
    except CredentialRejectedError as exc:
        logger.info("Federated sign-in rejected: %s", exc.code)
        return _login_page(error=_rejection_message(exc.code), status_code=401)
    except IdentityProviderError as exc:
        logger.warning("Federated sign-in failed: %s", exc.code)
        return _login_page(error=MSG_PROVIDER_DOWN, status_code=503)

    session = await _sign_in(request, identity)
    return _finish_form_sign_in(session)


def _finish_form_sign_in(session: Session, *, email: str = "") -> Response:
    cache = _main().SESSION_CACHE
    if session.user is None:
        status = _no_role_status(session)
        resp = _login_page(error=MSG_DEGRADED if status == 503 else MSG_NO_ROLE, email=email, status_code=status)
        cache.persist(resp, session)
        return resp
    resp = RedirectResponse(url=post_login_path(session.user.role), status_code=302)
    resp.headers["Cache-Control"] = "private, no-store"
    cache.persist(resp, session)
    return resp


@auth_router.post("/auth/session")
async def session_exchange(request: Request, payload: SessionExchange):
    """Exchange a Firebase ID token obtained by a browser SDK for a session cookie."""
    if not is_same_origin(request):
        return JSONResponse({"error": "cross_origin"}, status_code=403, headers={**NO_STORE, "Vary": "Origin"})
    mod = _main()
    try:
        claims = verify_id_token(id_token=payload.idToken, project_id=mod.PROVIDER_CFG.project_id)
    except IDTokenVerificationError as exc:
        logger.warning("ID token verification failed: %s", exc.code)
        return JSONResponse({"error": "invalid_id_token"}, status_code=401, headers=NO_STORE)

    session = await _sign_in(request, identity_from_claims(claims, payload.idToken))
    if session.user is None:
        status = _no_role_status(session)
        error = "profile_unavailable" if status == 503 else "no_role"
        resp = JSONResponse({"error": error}, status_code=status, headers=NO_STORE)
    else:
        resp = JSONResponse(
            {"user": session.user.to_dict(), "redirect": post_login_path(session.user.role)},
            headers=NO_STORE,
        )
    mod.SESSION_CACHE.persist(resp, session)
    return resp


@auth_router.api_route("/logout", methods=["GET", "POST"])
async def logout(request: Request):
    """Sign out locally: clear the session and its cookie, then go to /login."""
    mod = _main()
    session: Session = request.state.session
    await mod.AUTH_STATE.signed_out(session)
    resp = RedirectResponse(url="/login", status_code=302)
    resp.headers["Cache-Control"] = "private, no-store"
    mod.SESSION_CACHE.persist(resp, session)
    return resp
