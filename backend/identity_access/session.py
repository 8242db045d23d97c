"""
Request-scoped session state and the sign-in/sign-out listener.

A `Session` is created for every request (from the session cookie) and handed
explicitly to whoever changes the sign-in state. `AuthState` plays the role of
the provider's "on state change" hook: route handlers report sign-in and
sign-out, registered listeners react. `SessionListener` is the listener that
runs role resolution and updates the session; the web layer then persists the
session into the cookie, strictly after resolution has finished.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional
import logging

from .domain import Identity, UserRecord
from .roles import Resolution, RoleResolver

logger = logging.getLogger("gtstaff.identity_access")


@dataclass
class Session:
    user: Optional[UserRecord] = None
    identity: Optional[Identity] = None
    # Opaque id of the server-side record backing `user`.
    session_id: Optional[str] = None
    resolution: Optional[Resolution] = None
    # True when the cookie must be rewritten (user set) or removed (user None).
    dirty: bool = False

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    def apply(self, resolution: Resolution) -> None:
        self.resolution = resolution
        self.user = resolution.user
        self.dirty = True

    def clear(self) -> None:
        self.user = None
        self.identity = None
        self.dirty = True


StateListener = Callable[[Session, Optional[Identity]], Awaitable[None]]


class AuthState:
    """Registry of sign-in state listeners."""

    def __init__(self) -> None:
        self._listeners: List[StateListener] = []

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        """Register `listener`; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    async def signed_in(self, session: Session, identity: Identity) -> None:
        session.identity = identity
        await self._notify(session, identity)

    async def signed_out(self, session: Session) -> None:
        session.identity = None
        await self._notify(session, None)

    async def _notify(self, session: Session, identity: Optional[Identity]) -> None:
        for listener in list(self._listeners):
            await listener(session, identity)


class SessionListener:
    """Resolve the user on sign-in, clear the session on sign-out."""

    def __init__(self, resolver: RoleResolver) -> None:
        self._resolver = resolver

    async def __call__(self, session: Session, identity: Optional[Identity]) -> None:
        if identity is None:
            session.clear()
            return
        try:
            resolution = await self._resolver.resolve(identity)
        except Exception as exc:
            logger.warning("Session setup failed: %s", exc.__class__.__name__)
            session.clear()
            return
        session.apply(resolution)
        if resolution.user is None:
            logger.info("Sign-in without role (%s)", resolution.outcome.value)


def build_auth_state(resolver: RoleResolver) -> AuthState:
    """Return an AuthState with a SessionListener for `resolver` registered."""
    state = AuthState()
    state.on_state_change(SessionListener(resolver))
    return state
