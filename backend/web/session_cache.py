"""
Session cache: the resolved user, serialized into the `schoolTaskUser` cookie.

The route gate sees only that cookie, so it carries the whole user record
(`{id, name, email, role, photoURL?}`) as JSON, percent-encoded on the wire so
the value never needs cookie quoting.

The client can rewrite that cookie, so handlers never trust it. Every write
also creates a server-side `SessionRecord` whose opaque id travels in the
`gt_session` cookie; `load` builds the request's user from that record only.
"""
from __future__ import annotations

from typing import Callable, Optional
from urllib.parse import quote, unquote
import json

from starlette.responses import Response

from identity_access.domain import UserRecord
from identity_access.session import Session
from identity_access.stores import SessionStore

from web.auth_utils import cookie_opts

SESSION_COOKIE_NAME = "schoolTaskUser"
SESSION_ID_COOKIE_NAME = "gt_session"
SESSION_MAX_AGE_SECONDS = 7 * 24 * 60 * 60


class MalformedSessionCookie(ValueError):
    """Raised when the cookie value does not decode to a user object."""


def encode_user(user: UserRecord) -> str:
    return quote(json.dumps(user.to_dict(), separators=(",", ":")), safe="")


def decode_user(raw: str) -> UserRecord:
    try:
        data = json.loads(unquote(raw))
    except (ValueError, RecursionError) as exc:
        # RecursionError: deeply nested arrays/objects exhaust the decoder.
        raise MalformedSessionCookie("invalid_json") from exc
    if not isinstance(data, dict):
        raise MalformedSessionCookie("not_an_object")
    return UserRecord.from_dict(data)


class SessionCache:
    def __init__(self, environment: Callable[[], str], store: Optional[SessionStore] = None) -> None:
        # Callable so test overrides of the environment apply immediately.
        self._environment = environment
        self.store = store if store is not None else SessionStore()

    def read(self, raw: Optional[str]) -> Optional[UserRecord]:
        """Return the cookie user, None when absent; raises MalformedSessionCookie."""
        if not raw:
            return None
        return decode_user(raw)

    def load(self, session_id: Optional[str]) -> Session:
        """Build the request-scoped session from the server-side record for `session_id`."""
        rec = self.store.get(session_id)
        if rec is None:
            return Session()
        return Session(user=rec.user, session_id=rec.session_id)

    def write(self, response: Response, user: UserRecord) -> str:
        """Store `user` server-side and set both cookies; returns the new session id."""
        rec = self.store.create(user=user, ttl_seconds=SESSION_MAX_AGE_SECONDS)
        self._set(response, SESSION_COOKIE_NAME, encode_user(user))
        self._set(response, SESSION_ID_COOKIE_NAME, rec.session_id)
        return rec.session_id

    def clear(self, response: Response, session_id: Optional[str] = None) -> None:
        self.store.delete(session_id)
        opts = cookie_opts(self._environment())
        for name in (SESSION_COOKIE_NAME, SESSION_ID_COOKIE_NAME):
            response.delete_cookie(
                key=name,
                path="/",
                httponly=True,
                secure=opts["secure"],
                samesite=opts["samesite"],
            )

    def persist(self, response: Response, session: Session) -> None:
        """Mirror a changed session onto the response (write or remove the cookies)."""
        if not session.dirty:
            return
        # A sign-in always gets a fresh id; the previous record is dropped.
        self.store.delete(session.session_id)
        if session.user is not None:
            session.session_id = self.write(response, session.user)
        else:
            self.clear(response)
            session.session_id = None
        session.dirty = False

    def _set(self, response: Response, key: str, value: str) -> None:
        opts = cookie_opts(self._environment())
        response.set_cookie(
            key=key,
            value=value,
            max_age=SESSION_MAX_AGE_SECONDS,
            path="/",
            httponly=True,
            secure=opts["secure"],
            samesite=opts["samesite"],
        )
