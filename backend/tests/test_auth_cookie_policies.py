"""
Cookie policy tests: host-only session cookie with consistent flags.

Goals:
- The `schoolTaskUser` cookie never carries a Domain attribute.
- SameSite=strict and HttpOnly everywhere; Secure outside local development.
- Seven-day lifetime.
"""

from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from identity_access.domain import Identity
from identity_access.profiles import InMemoryProfileStore
from web import main
from web.auth_utils import cookie_opts, is_local_environment

from helpers import FakeProvider, install_auth_wiring

pytestmark = pytest.mark.anyio("asyncio")

TEACHER = Identity(uid="t1", email="tom@goodtree.school", id_token="tok")


async def _login_set_cookie(monkeypatch: pytest.MonkeyPatch, env: str) -> str:
    install_auth_wiring(
        monkeypatch,
        main,
        provider=FakeProvider({TEACHER.email: ("pw", TEACHER)}),
        store=InMemoryProfileStore({"t1": {"role": "teacher"}}),
    )
    monkeypatch.setattr(main.SETTINGS, "_env_override", env, raising=False)
    async with httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as client:
        r = await client.post("/login", data={"email": TEACHER.email, "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302
    return r.headers.get("set-cookie", "")


async def test_login_cookie_flags_dev(monkeypatch: pytest.MonkeyPatch):
    sc = await _login_set_cookie(monkeypatch, "dev")

    assert "Domain=" not in sc and "domain=" not in sc
    assert "SameSite=strict" in sc
    assert "HttpOnly" in sc
    assert "Max-Age=604800" in sc
    assert "Secure" not in sc


async def test_login_cookie_flags_prod(monkeypatch: pytest.MonkeyPatch):
    sc = await _login_set_cookie(monkeypatch, "prod")

    assert "Domain=" not in sc and "domain=" not in sc
    assert "SameSite=strict" in sc
    assert "HttpOnly" in sc
    assert "Secure" in sc


@pytest.mark.parametrize(
    "env,secure",
    [("dev", False), ("local", False), ("test", False), ("prod", True), ("staging", True), ("", True)],
)
def test_cookie_opts_by_environment(env, secure):
    assert cookie_opts(env) == {"secure": secure, "samesite": "strict"}
    assert is_local_environment(env) is (not secure)
