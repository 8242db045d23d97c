"""
Shared fakes for the auth tests.

Why: Several suites need the same stand-ins for the identity provider and the
profile store; keeping them here avoids drifting copies.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import anyio

from identity_access.domain import Identity
from identity_access.profiles import InMemoryProfileStore, ProfileStoreError
from identity_access.provider import CredentialRejectedError, IdentityProviderError
from identity_access.roles import RoleOverrides, RoleResolver
from identity_access.session import build_auth_state


class FakeProvider:
    """Identity provider double: known accounts sign in, others are rejected."""

    def __init__(self, accounts: Optional[Dict[str, tuple]] = None, *, unavailable: bool = False):
        # email -> (password, Identity)
        self.accounts = dict(accounts or {})
        self.unavailable = unavailable
        self.calls: list = []

    def sign_in_with_password(self, *, email: str, password: str) -> Identity:
        self.calls.append(("password", email))
        if self.unavailable:
            raise IdentityProviderError("provider_unavailable")
        entry = self.accounts.get(email)
        if entry is None:
            raise CredentialRejectedError("email_not_found")
        if entry[0] != password:
            raise CredentialRejectedError("invalid_password")
        return entry[1]

    def sign_in_with_idp(self, *, id_token: str, provider_id: str = "google.com") -> Identity:
        self.calls.append(("idp", provider_id))
        if self.unavailable:
            raise IdentityProviderError("provider_unavailable")
        for _, identity in self.accounts.values():
            if identity.id_token == id_token:
                return identity
        raise CredentialRejectedError("invalid_idp_response")

    def sign_up(self, *, email: str, password: str, display_name: Optional[str] = None) -> Identity:
        self.calls.append(("sign_up", email))
        identity = Identity(uid=f"uid-{len(self.accounts) + 1}", email=email, display_name=display_name or "", id_token="new-token")
        self.accounts[email] = (password, identity)
        return identity


class FailingStore:
    """Profile store that must not be consulted (or fails when it is)."""

    def __init__(self, exc: Optional[Exception] = None):
        self.exc = exc or ProfileStoreError("unavailable")
        self.calls = 0

    async def get_profile(self, uid: str, *, id_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
        self.calls += 1
        raise self.exc

    async def set_profile(self, uid, data, *, merge=False, id_token=None) -> None:
        raise self.exc


class SlowStore:
    """Profile store that answers only after `delay` seconds."""

    def __init__(self, delay: float, profile: Optional[Dict[str, Any]] = None):
        self.delay = delay
        self.profile = profile

    async def get_profile(self, uid: str, *, id_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
        await anyio.sleep(self.delay)
        return self.profile

    async def set_profile(self, uid, data, *, merge=False, id_token=None) -> None:
        return None


def install_auth_wiring(monkeypatch, main, *, provider=None, store=None, overrides=None, timeout_seconds=5.0):
    """Point web.main at fakes; returns (provider, store)."""
    provider = provider or FakeProvider()
    store = store if store is not None else InMemoryProfileStore()
    resolver = RoleResolver(store, overrides or RoleOverrides(), timeout_seconds=timeout_seconds)
    monkeypatch.setattr(main, "PROVIDER", provider)
    monkeypatch.setattr(main, "PROFILE_STORE", store)
    monkeypatch.setattr(main, "RESOLVER", resolver)
    monkeypatch.setattr(main, "AUTH_STATE", build_auth_state(resolver))
    return provider, store


def session_cookies(main, user) -> dict:
    """Cookies of a real sign-in: the gate cookie plus a live server-side session."""
    from web.session_cache import SESSION_COOKIE_NAME, SESSION_ID_COOKIE_NAME, encode_user

    rec = main.SESSION_CACHE.store.create(user=user)
    return {SESSION_COOKIE_NAME: encode_user(user), SESSION_ID_COOKIE_NAME: rec.session_id}
