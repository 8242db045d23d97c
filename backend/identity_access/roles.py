"""
Role resolution: map a signed-in Identity to the application's UserRecord.

Order (first match wins):
1. A configured bypass pair (uid + email) resolves to `admin` without any
   store lookup.
2. The profile document `users/{uid}` is read under a deadline. A found
   document yields its `role` field verbatim.
3. Missing document, timeout, or store failure: a configured fallback email
   resolves to `admin`, everything else to "no role" (user None).

Overrides are configuration, not code. They are empty by default and the
startup guard refuses them in production-like environments unless explicitly
allowed; regular admins are provisioned with `tools.provision_admin`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple
import logging
import os

import anyio

from .domain import ALLOWED_ROLES, Identity, UserRecord, humanize_identifier, normalize_email
from .profiles import ProfileStore, ProfileStoreError

logger = logging.getLogger("gtstaff.identity_access")

DEFAULT_LOOKUP_TIMEOUT_SECONDS = 5.0


class ResolutionOutcome(str, Enum):
    OVERRIDE = "override"
    PROFILE = "profile"
    FALLBACK = "fallback"
    NO_PROFILE = "no_profile"
    STORE_TIMEOUT = "store_timeout"
    STORE_UNAVAILABLE = "store_unavailable"


_DEGRADED = frozenset({ResolutionOutcome.STORE_TIMEOUT, ResolutionOutcome.STORE_UNAVAILABLE})


@dataclass(frozen=True)
class Resolution:
    user: Optional[UserRecord]
    outcome: ResolutionOutcome
    # For FALLBACK: why the lookup did not produce a profile.
    cause: Optional[ResolutionOutcome] = None

    @property
    def degraded(self) -> bool:
        """True when the store could not answer, as opposed to "no role"."""
        return self.outcome in _DEGRADED or self.cause in _DEGRADED


def _parse_bypass(raw: Optional[str]) -> FrozenSet[Tuple[str, str]]:
    """Parse `uid:email,uid:email`; malformed entries are ignored."""
    pairs = set()
    for part in (raw or "").split(","):
        uid, sep, email = part.strip().partition(":")
        if sep and uid.strip() and email.strip():
            pairs.add((uid.strip(), normalize_email(email)))
    return frozenset(pairs)


def _parse_emails(raw: Optional[str]) -> FrozenSet[str]:
    return frozenset(normalize_email(e) for e in (raw or "").split(",") if e.strip())


@dataclass(frozen=True)
class RoleOverrides:
    """Bootstrap admin accounts that bypass or back up the profile lookup."""

    bypass: FrozenSet[Tuple[str, str]] = field(default_factory=frozenset)
    fallback_emails: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, *, bypass: Iterable[Tuple[str, str]] = (), fallback_emails: Iterable[str] = ()) -> "RoleOverrides":
        return cls(
            bypass=frozenset((uid, normalize_email(email)) for uid, email in bypass),
            fallback_emails=frozenset(normalize_email(e) for e in fallback_emails),
        )

    @classmethod
    def from_env(cls) -> "RoleOverrides":
        return cls(
            bypass=_parse_bypass(os.getenv("GT_ADMIN_BYPASS")),
            fallback_emails=_parse_emails(os.getenv("GT_ADMIN_FALLBACK_EMAILS")),
        )

    @property
    def configured(self) -> bool:
        return bool(self.bypass or self.fallback_emails)

    def bypasses(self, identity: Identity) -> bool:
        return (identity.uid, normalize_email(identity.email)) in self.bypass

    def falls_back(self, identity: Identity) -> bool:
        email = normalize_email(identity.email)
        return bool(email) and email in self.fallback_emails


class RoleResolver:
    def __init__(
        self,
        profiles: ProfileStore,
        overrides: Optional[RoleOverrides] = None,
        *,
        timeout_seconds: float = DEFAULT_LOOKUP_TIMEOUT_SECONDS,
    ) -> None:
        self._profiles = profiles
        self._overrides = overrides or RoleOverrides()
        self._timeout = timeout_seconds

    async def resolve(self, identity: Identity) -> Resolution:
        """Resolve the user record for a signed-in identity.

        Never raises for store problems and never waits longer than the
        configured deadline for the lookup.
        """
        if self._overrides.bypasses(identity):
            logger.info("Role override applied for bootstrap account")
            return Resolution(user=self._admin_user(identity), outcome=ResolutionOutcome.OVERRIDE)

        failure: ResolutionOutcome
        try:
            with anyio.fail_after(self._timeout):
                profile = await self._profiles.get_profile(identity.uid, id_token=identity.id_token)
        except TimeoutError:
            logger.warning("Profile lookup timed out after %.1fs", self._timeout)
            failure = ResolutionOutcome.STORE_TIMEOUT
        except ProfileStoreError as exc:
            logger.warning("Profile lookup failed: %s", exc.code)
            failure = ResolutionOutcome.STORE_UNAVAILABLE
        except Exception as exc:
            logger.warning("Profile lookup failed: %s", exc.__class__.__name__)
            failure = ResolutionOutcome.STORE_UNAVAILABLE
        else:
            if profile is not None:
                return Resolution(user=self._profile_user(identity, profile), outcome=ResolutionOutcome.PROFILE)
            logger.info("No profile document for signed-in account")
            failure = ResolutionOutcome.NO_PROFILE

        if self._overrides.falls_back(identity):
            logger.info("Fallback admin email applied (%s)", failure.value)
            return Resolution(user=self._admin_user(identity), outcome=ResolutionOutcome.FALLBACK, cause=failure)
        return Resolution(user=None, outcome=failure)

    @staticmethod
    def _profile_user(identity: Identity, profile: dict) -> UserRecord:
        role = profile.get("role")
        if role is not None and role not in ALLOWED_ROLES:
            logger.warning("Profile carries unknown role value")
        name = (
            profile.get("displayName")
            or identity.display_name
            or (identity.email.split("@")[0] if identity.email else "")
        )
        return UserRecord(
            id=identity.uid,
            name=str(name),
            email=identity.email or "",
            role=str(role) if role is not None else None,
            photo_url=identity.photo_url,
        )

    @staticmethod
    def _admin_user(identity: Identity) -> UserRecord:
        return UserRecord(
            id=identity.uid,
            name=identity.display_name or humanize_identifier(identity.email),
            email=identity.email or "",
            role="admin",
            photo_url=identity.photo_url,
        )
