"""
Firebase ID token verification for the identity_access bounded context.

Why: Browsers that sign in with the Firebase JS SDK hand their ID token to
`POST /auth/session`. The server must not trust that token without checking
it against Google's published signing keys.

Security: Validates signature (RS256 only) against the securetoken JWKS,
issuer `https://securetoken.google.com/<project>`, audience `<project>`,
a non-empty subject, and the temporal claims with a small clock skew.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .domain import Identity

JWKS_URL = "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
ISSUER_PREFIX = "https://securetoken.google.com/"


class IDTokenVerificationError(Exception):
    """Raised when the ID token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass
class _CacheEntry:
    jwks: Dict[str, object]
    expires_at: float


class JWKSCache:
    """Small in-memory cache for the signing keys (they rotate every few hours)."""

    def __init__(self, url: str = JWKS_URL, ttl_seconds: int = 3600):
        self.url = url
        self.ttl_seconds = ttl_seconds
        self._entry: _CacheEntry | None = None

    def get(self) -> Dict[str, object]:
        now = time.time()
        if self._entry and self._entry.expires_at > now:
            return self._entry.jwks
        jwks = self._fetch()
        self._entry = _CacheEntry(jwks=jwks, expires_at=now + self.ttl_seconds)
        return jwks

    def _fetch(self) -> Dict[str, object]:
        try:
            resp = requests.get(self.url, timeout=5)
        except requests.RequestException as exc:
            raise IDTokenVerificationError("jwks_fetch_failed") from exc
        if resp.status_code != 200:
            raise IDTokenVerificationError("jwks_fetch_failed")
        try:
            jwks = resp.json()
        except ValueError as exc:
            raise IDTokenVerificationError("jwks_invalid") from exc
        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise IDTokenVerificationError("jwks_invalid")
        return jwks


JWKS_CACHE = JWKSCache()

MAX_CLOCK_SKEW_SECONDS = 5


def verify_id_token(
    *,
    id_token: str,
    project_id: str,
    cache: JWKSCache | None = None,
) -> Dict[str, object]:
    """Validate a Firebase ID token and return its claims.

    Raises
    ------
    IDTokenVerificationError:
        When the token is invalid (signature, issuer, audience, expiry, kid).
    """
    if not project_id:
        raise IDTokenVerificationError("project_not_configured")
    cache = cache or JWKS_CACHE
    try:
        header = jwt.get_unverified_header(id_token)
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc
    kid = header.get("kid")
    if not kid:
        raise IDTokenVerificationError("missing_kid")
    jwks = cache.get()
    key_dict = _find_key(jwks, kid)
    if not key_dict:
        raise IDTokenVerificationError("unknown_kid")

    try:
        claims = jwt.decode(
            id_token,
            key_dict,
            algorithms=["RS256"],
            audience=project_id,
            issuer=f"{ISSUER_PREFIX}{project_id}",
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_at_hash": False,
            },
        )
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc

    if not isinstance(claims.get("sub"), str) or not claims.get("sub"):
        raise IDTokenVerificationError("invalid_id_token")
    _validate_temporal_claims(claims)
    return claims


def identity_from_claims(claims: Dict[str, object], id_token: str) -> Identity:
    picture = claims.get("picture")
    return Identity(
        uid=str(claims.get("sub") or ""),
        email=str(claims.get("email") or ""),
        display_name=str(claims.get("name") or ""),
        photo_url=str(picture) if picture else None,
        id_token=id_token,
    )


def _find_key(jwks: Dict[str, object], kid: str) -> Dict[str, object] | None:
    keys = jwks.get("keys")
    if not isinstance(keys, list):
        return None
    for key in keys:
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None


def _validate_temporal_claims(claims: Dict[str, object]) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise IDTokenVerificationError("invalid_id_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise IDTokenVerificationError("invalid_id_token")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)) and iat - MAX_CLOCK_SKEW_SECONDS > now:
        raise IDTokenVerificationError("invalid_id_token")

    # Firebase specific: the user must have authenticated in the past.
    auth_time = claims.get("auth_time")
    if isinstance(auth_time, (int, float)) and auth_time - MAX_CLOCK_SKEW_SECONDS > now:
        raise IDTokenVerificationError("invalid_id_token")
