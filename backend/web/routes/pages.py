"""
Landing pages rendered for the signed-in staff member.

The route gate only checks that a cookie exists; these handlers read the user
from the server-side session record and enforce role checks.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from identity_access.domain import ROLE_LABELS
from identity_access.session import Session

from web.components import Component, Layout, nav_items_for

pages_router = APIRouter(tags=["Pages"])

NO_STORE = {"Cache-Control": "private, no-store"}

_SECTIONS = {
    "/dashboard": ("Dashboard", "Overview of open tasks, incidents and staff requests."),
    "/tasks": ("Tasks", "Tasks assigned to you and your groups."),
    "/groups": ("Groups", "Teaching groups and the staff assigned to them."),
    "/admin": ("Administration", "Manage staff accounts, roles and school settings."),
}


def _to_login(request: Request) -> Response:
    resp = RedirectResponse(url="/login", status_code=302)
    resp.headers["Cache-Control"] = "private, no-store"
    session: Session = request.state.session
    if session.user is None:
        # Cookie without a live server-side session: drop it so the gate stops letting it through.
        from web import main

        main.SESSION_CACHE.clear(resp)
    return resp


def _render_section(request: Request, path: str) -> Response:
    user = request.state.session.user
    title, blurb = _SECTIONS[path]
    role_label = ROLE_LABELS.get(user.role, user.role or "")
    links = "".join(
        f'<li><a href="{Component.escape(href)}">{Component.escape(label)}</a></li>'
        for href, label in nav_items_for(user.role)
    )
    content = f"""
    <div class="container">
        <h1>{Component.escape(title)}</h1>
        <p class="text-muted">Signed in as {Component.escape(user.name or user.email)} ({Component.escape(role_label)})</p>
        <p>{Component.escape(blurb)}</p>
        <ul class="section-links">{links}</ul>
    </div>
    """
    layout = Layout(title=title, content=content, user=user, current_path=request.url.path)
    return HTMLResponse(content=layout.render(), headers=NO_STORE)


@pages_router.get("/", response_class=HTMLResponse)
async def home(request: Request):
    # Signed-in visitors never get here; the gate sends them to their landing page.
    content = """
    <section class="login-card">
        <h1>GT Staff Hub</h1>
        <p>Tasks, groups and administration for the school staff.</p>
        <p><a class="button button--primary" href="/login">Sign in</a></p>
    </section>
    """
    layout = Layout(title="Welcome", content=content, show_nav=False, current_path="/")
    return HTMLResponse(content=layout.render(), headers=NO_STORE)


@pages_router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request):
    if request.state.session.user is None:
        return _to_login(request)
    return _render_section(request, "/dashboard")


@pages_router.get("/tasks", response_class=HTMLResponse)
async def tasks(request: Request):
    if request.state.session.user is None:
        return _to_login(request)
    return _render_section(request, "/tasks")


@pages_router.get("/groups", response_class=HTMLResponse)
async def groups(request: Request):
    if request.state.session.user is None:
        return _to_login(request)
    return _render_section(request, "/groups")


@pages_router.get("/admin", response_class=HTMLResponse)
@pages_router.get("/admin/{rest:path}", response_class=HTMLResponse)
async def admin(request: Request, rest: str = ""):
    user = request.state.session.user
    if user is None or user.role != "admin":
        return _to_login(request)
    return _render_section(request, "/admin")
