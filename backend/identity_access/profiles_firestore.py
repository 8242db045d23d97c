"""
Firestore-backed profile store (REST API over httpx).

Why: Role resolution needs one document read per sign-in and provisioning
needs one merge write. The Firestore REST API covers both without pulling in
the Google Cloud SDK, and an async client lets the resolver bound the lookup
with a structured deadline.

Security:
- Requests carry the signed-in user's Firebase ID token as bearer token, so
  Firestore security rules apply exactly as for the browser SDK.
- Do not log tokens or document contents.

Note: `FIRESTORE_EMULATOR_HOST` switches the base URL to a local emulator.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple
import os
import re
from urllib.parse import quote

import httpx

from .profiles import ProfileStoreError

DEFAULT_BASE_URL = "https://firestore.googleapis.com/v1"

_SIMPLE_FIELD = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def encode_value(value: Any) -> Dict[str, Any]:
    """Encode a Python value as a Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": value.isoformat()}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, Mapping):
        return {"mapValue": {"fields": {str(k): encode_value(v) for k, v in value.items()}}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"unsupported Firestore value type: {type(value).__name__}")


def decode_value(typed: Mapping[str, Any]) -> Any:
    """Decode a Firestore typed value into a plain Python value."""
    if "stringValue" in typed:
        return typed["stringValue"]
    if "booleanValue" in typed:
        return bool(typed["booleanValue"])
    if "integerValue" in typed:
        return int(typed["integerValue"])
    if "doubleValue" in typed:
        return float(typed["doubleValue"])
    if "nullValue" in typed:
        return None
    if "timestampValue" in typed:
        return typed["timestampValue"]
    if "referenceValue" in typed:
        return typed["referenceValue"]
    if "mapValue" in typed:
        return decode_fields((typed.get("mapValue") or {}).get("fields") or {})
    if "arrayValue" in typed:
        return [decode_value(v) for v in (typed.get("arrayValue") or {}).get("values") or []]
    raise ValueError("unknown_firestore_value")


def decode_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: decode_value(v) for name, v in fields.items()}


def _field_path(name: str) -> str:
    if _SIMPLE_FIELD.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


class FirestoreProfileStore:
    """Read and write `users/{uid}` documents via the Firestore REST API.

    Parameters
    ----------
    project_id:
        Firebase/GCP project id.
    api_key:
        Optional web API key appended as `key=` (required for unauthenticated
        access patterns; harmless otherwise).
    transport:
        Optional httpx transport; tests pass an `httpx.MockTransport`.
    """

    def __init__(
        self,
        *,
        project_id: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        database: str = "(default)",
        collection: str = "users",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not project_id:
            raise ValueError("project_id is required")
        if not re.match(r"^[A-Za-z0-9_\-]+$", collection or ""):
            raise ValueError("Invalid collection name")
        self.project_id = project_id
        self.api_key = api_key
        self.collection = collection
        self.database = database
        self._base_url = (base_url or _default_base_url()).rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def document_url(self, uid: str) -> str:
        doc_id = quote(uid, safe="")
        return (
            f"{self._base_url}/projects/{self.project_id}/databases/{self.database}"
            f"/documents/{self.collection}/{doc_id}"
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    def _headers(self, id_token: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if id_token:
            headers["Authorization"] = f"Bearer {id_token}"
        return headers

    def _params(self, extra: Optional[List[Tuple[str, str]]] = None) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []
        if self.api_key:
            params.append(("key", self.api_key))
        params.extend(extra or [])
        return params

    async def get_profile(self, uid: str, *, id_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Return the decoded document or None when it does not exist.

        Raises ProfileStoreError when the store is unreachable, denies access,
        or answers with something that is not a document.
        """
        if not uid:
            return None
        try:
            async with self._client() as client:
                resp = await client.get(self.document_url(uid), headers=self._headers(id_token), params=self._params())
        except httpx.HTTPError as exc:
            raise ProfileStoreError("unavailable") from exc
        if resp.status_code == 404:
            return None
        if resp.status_code in (401, 403):
            raise ProfileStoreError("permission_denied")
        if resp.status_code != 200:
            raise ProfileStoreError("unavailable")
        try:
            body = resp.json()
        except ValueError as exc:
            raise ProfileStoreError("invalid_document") from exc
        if not isinstance(body, dict):
            raise ProfileStoreError("invalid_document")
        try:
            return decode_fields(body.get("fields") or {})
        except (ValueError, TypeError) as exc:
            raise ProfileStoreError("invalid_document") from exc

    async def set_profile(
        self,
        uid: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
        id_token: Optional[str] = None,
    ) -> None:
        """Create or overwrite `users/{uid}`; with merge=True only touch the given fields."""
        if not uid:
            raise ValueError("uid is required")
        body = {"fields": {str(k): encode_value(v) for k, v in data.items()}}
        mask = [("updateMask.fieldPaths", _field_path(str(k))) for k in data.keys()] if merge else []
        try:
            async with self._client() as client:
                resp = await client.patch(
                    self.document_url(uid),
                    headers=self._headers(id_token),
                    params=self._params(mask),
                    json=body,
                )
        except httpx.HTTPError as exc:
            raise ProfileStoreError("unavailable") from exc
        if resp.status_code in (401, 403):
            raise ProfileStoreError("permission_denied")
        if resp.status_code != 200:
            raise ProfileStoreError("write_failed")


def _default_base_url() -> str:
    emulator = (os.getenv("FIRESTORE_EMULATOR_HOST") or "").strip()
    if emulator:
        return f"http://{emulator}/v1"
    return DEFAULT_BASE_URL
