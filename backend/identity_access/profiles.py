"""
User-profile stores: the protocol the role resolver depends on and an
in-memory implementation for development and tests.

Why: The resolver only needs "get document by id" and the provisioning tool
only needs "set/merge document". Keeping both behind a tiny protocol lets the
web layer swap the Firestore-backed store (`profiles_firestore`) for the
in-memory one via `PROFILE_STORE_BACKEND=memory`.

Documents are plain dicts with the original field names (`uid`, `email`,
`displayName`, `role`, ...).
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol
import copy


class ProfileStoreError(Exception):
    """Raised when the profile store cannot answer (unreachable, denied, bad payload)."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class ProfileStore(Protocol):
    async def get_profile(self, uid: str, *, id_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
        ...

    async def set_profile(
        self,
        uid: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
        id_token: Optional[str] = None,
    ) -> None:
        ...


class InMemoryProfileStore:
    """Dict-backed store keyed by uid. Not shared across processes."""

    def __init__(self, profiles: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._data: Dict[str, Dict[str, Any]] = {uid: dict(doc) for uid, doc in (profiles or {}).items()}

    async def get_profile(self, uid: str, *, id_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
        doc = self._data.get(uid)
        return copy.deepcopy(doc) if doc is not None else None

    async def set_profile(
        self,
        uid: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
        id_token: Optional[str] = None,
    ) -> None:
        if merge and uid in self._data:
            self._data[uid].update(copy.deepcopy(dict(data)))
        else:
            self._data[uid] = copy.deepcopy(dict(data))
