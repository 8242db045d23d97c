"""
Minimal Firebase Authentication client (Identity Toolkit REST API).

Why: Keep the auth provider behind a framework-independent adapter. The web
layer calls into this client for password and federated sign-in; the
provisioning CLI additionally uses `sign_up`. Session state is not managed
here: the caller hands the returned Identity to `AuthState`.

Security: Never log credentials or tokens. Error payloads from the provider
are reduced to a short code (e.g. `invalid_password`) before they leave this
module.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
import os
from urllib.parse import urlencode

# Small indirection to ease monkeypatching in tests
import requests as http

from .domain import Identity

DEFAULT_BASE_URL = "https://identitytoolkit.googleapis.com/v1"


def http_post(url: str, json: Dict[str, Any], timeout: float):
    return http.post(url, json=json, timeout=timeout)


class IdentityProviderError(Exception):
    """Raised when the auth provider cannot complete a request."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class CredentialRejectedError(IdentityProviderError):
    """Raised when the provider rejects the presented credentials."""


# Provider messages that mean "these credentials are not acceptable" as
# opposed to "the provider is misconfigured or down".
_REJECTION_CODES = frozenset(
    {
        "email_not_found",
        "invalid_password",
        "invalid_login_credentials",
        "invalid_email",
        "user_disabled",
        "too_many_attempts_try_later",
        "invalid_idp_response",
        "email_exists",
        "weak_password",
        "missing_password",
        "missing_email",
    }
)


@dataclass(frozen=True)
class IdentityToolkitConfig:
    api_key: str
    project_id: str
    base_url: str = DEFAULT_BASE_URL
    # Required by signInWithIdp; any URI registered as authorized domain works.
    idp_request_uri: str = "http://localhost"
    timeout_seconds: float = 10.0

    def endpoint(self, method: str) -> str:
        return f"{self.base_url.rstrip('/')}/accounts:{method}?{urlencode({'key': self.api_key})}"


def load_identity_toolkit_config() -> IdentityToolkitConfig:
    api_key = os.getenv("FIREBASE_API_KEY", "")
    project_id = os.getenv("FIREBASE_PROJECT_ID", "")
    emulator = (os.getenv("FIREBASE_AUTH_EMULATOR_HOST") or "").strip()
    base_url = f"http://{emulator}/identitytoolkit.googleapis.com/v1" if emulator else DEFAULT_BASE_URL
    request_uri = os.getenv("FIREBASE_IDP_REQUEST_URI", "http://localhost")
    return IdentityToolkitConfig(api_key=api_key, project_id=project_id, base_url=base_url, idp_request_uri=request_uri)


def _error_code(resp) -> str:
    """Extract the provider's error message as a snake_case code.

    Identity Toolkit answers with {"error": {"message": "INVALID_PASSWORD"}};
    some messages carry a trailing explanation after " : ".
    """
    try:
        body = resp.json()
    except ValueError:
        return "provider_error"
    message = ""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            message = str(err.get("message") or "")
    code = message.split(" ", 1)[0].strip().lower()
    return code or "provider_error"


def _identity_from(body: Dict[str, Any]) -> Identity:
    uid = str(body.get("localId") or "")
    if not uid:
        raise IdentityProviderError("missing_local_id")
    return Identity(
        uid=uid,
        email=str(body.get("email") or ""),
        display_name=str(body.get("displayName") or ""),
        photo_url=(str(body["photoUrl"]) if body.get("photoUrl") else None),
        id_token=(str(body["idToken"]) if body.get("idToken") else None),
    )


class IdentityToolkitClient:
    def __init__(self, config: IdentityToolkitConfig):
        self.cfg = config

    def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.cfg.api_key:
            raise IdentityProviderError("provider_not_configured")
        try:
            resp = http_post(self.cfg.endpoint(method), json=payload, timeout=self.cfg.timeout_seconds)
        except http.RequestException as exc:
            raise IdentityProviderError("provider_unavailable") from exc
        if resp.status_code != 200:
            code = _error_code(resp)
            if code in _REJECTION_CODES:
                raise CredentialRejectedError(code)
            raise IdentityProviderError(code)
        try:
            body = resp.json()
        except ValueError as exc:
            raise IdentityProviderError("invalid_provider_response") from exc
        if not isinstance(body, dict):
            raise IdentityProviderError("invalid_provider_response")
        return body

    def sign_in_with_password(self, *, email: str, password: str) -> Identity:
        """Authenticate with email/password; raises CredentialRejectedError on bad credentials."""
        body = self._call(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return _identity_from(body)

    def sign_in_with_idp(self, *, id_token: str, provider_id: str = "google.com") -> Identity:
        """Authenticate with a federated identity (e.g. a Google ID token)."""
        if not id_token:
            raise CredentialRejectedError("invalid_idp_response")
        body = self._call(
            "signInWithIdp",
            {
                "postBody": urlencode({"id_token": id_token, "providerId": provider_id}),
                "requestUri": self.cfg.idp_request_uri,
                "returnIdpCredential": True,
                "returnSecureToken": True,
            },
        )
        return _identity_from(body)

    def sign_up(self, *, email: str, password: str, display_name: Optional[str] = None) -> Identity:
        """Create an email/password account (provisioning only)."""
        body = self._call(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        identity = _identity_from(body)
        if display_name and not identity.display_name:
            return Identity(
                uid=identity.uid,
                email=identity.email,
                display_name=display_name,
                photo_url=identity.photo_url,
                id_token=identity.id_token,
            )
        return identity
