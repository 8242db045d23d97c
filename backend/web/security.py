"""
Shared web security helpers for the sign-in routes.

Login CSRF: a third-party page must not be able to post a token or
credentials to our sign-in endpoints and plant its own account in the
victim's browser. Browsers send `Origin` (or at least `Referer`) on such
posts, so comparing it with our own origin is enough.
"""
from __future__ import annotations

from typing import Tuple
from urllib.parse import urlparse
import os

from fastapi import Request


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> Tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    port = p.port if p.port is not None else _default_port(scheme)
    return scheme, p.hostname.lower(), int(port)


def _parse_server(request: Request) -> Tuple[str, str, int]:
    trust_proxy = (os.getenv("GT_TRUST_PROXY", "false") or "").strip().lower() == "true"
    if trust_proxy:
        proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip()
        host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").split(",")[0].strip()
        scheme = (proto or request.url.scheme or "http").lower()
        if host:
            return _parse_origin(f"{scheme}://{host}")
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port) if request.url.port else _default_port(scheme)
    return scheme, host, port


def is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow to not break non-browser clients.
    Proxy awareness: Only trust X-Forwarded-* when GT_TRUST_PROXY=true.
    """
    claimed = request.headers.get("origin") or request.headers.get("referer")
    if not claimed:
        return True
    try:
        return _parse_origin(claimed) == _parse_server(request)
    except ValueError:
        # Unparseable header, "null" origin or a bad port.
        return False
