"""
In-memory session store for development and single-process deployments.

Why: The `schoolTaskUser` cookie is readable and writable by the client, so it
only steers the route gate. The user that pages and APIs act on is kept
server-side, keyed by an opaque session id. For multi-process deployments,
replace with a Redis/DB-backed store.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import secrets
import time

from .domain import UserRecord


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    user: UserRecord
    expires_at: Optional[int] = None


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(self, *, user: UserRecord, ttl_seconds: int = 3600) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(session_id=sid, user=user, expires_at=_now() + ttl_seconds)
        self._data[sid] = rec
        return rec

    def get(self, session_id: Optional[str]) -> Optional[SessionRecord]:
        if not session_id:
            return None
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def delete(self, session_id: Optional[str]) -> None:
        if session_id:
            self._data.pop(session_id, None)
