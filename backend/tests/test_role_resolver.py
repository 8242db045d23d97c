"""
Role resolution: overrides first, then the profile lookup under a deadline,
then the fallback email list.
"""
from __future__ import annotations

import time

import pytest

from identity_access.domain import Identity
from identity_access.profiles import InMemoryProfileStore, ProfileStoreError
from identity_access.roles import Resolution, ResolutionOutcome, RoleOverrides, RoleResolver

from helpers import FailingStore, SlowStore

pytestmark = pytest.mark.anyio("asyncio")

BOOTSTRAP_UID = "mH5yrjER2oPEBU7dRd9qh76qa3L2"
BOOTSTRAP_EMAIL = "khalil.hendricks@gmail.com"


async def test_bypass_pair_resolves_admin_without_lookup():
    store = FailingStore()
    overrides = RoleOverrides.of(bypass=[(BOOTSTRAP_UID, BOOTSTRAP_EMAIL)])
    resolver = RoleResolver(store, overrides)

    res = await resolver.resolve(Identity(uid=BOOTSTRAP_UID, email=BOOTSTRAP_EMAIL))

    assert res.outcome is ResolutionOutcome.OVERRIDE
    assert res.user is not None
    assert res.user.role == "admin"
    assert res.user.name == "Khalil Hendricks"
    assert res.user.to_dict() == {
        "id": BOOTSTRAP_UID,
        "name": "Khalil Hendricks",
        "email": BOOTSTRAP_EMAIL,
        "role": "admin",
    }
    assert store.calls == 0


async def test_bypass_requires_both_uid_and_email():
    store = InMemoryProfileStore({"other-uid": {"role": "teacher"}})
    overrides = RoleOverrides.of(bypass=[(BOOTSTRAP_UID, BOOTSTRAP_EMAIL)])
    resolver = RoleResolver(store, overrides)

    res = await resolver.resolve(Identity(uid="other-uid", email=BOOTSTRAP_EMAIL))

    assert res.outcome is ResolutionOutcome.PROFILE
    assert res.user.role == "teacher"


async def test_bypass_email_match_is_case_insensitive():
    overrides = RoleOverrides.of(bypass=[(BOOTSTRAP_UID, BOOTSTRAP_EMAIL)])
    resolver = RoleResolver(FailingStore(), overrides)

    res = await resolver.resolve(Identity(uid=BOOTSTRAP_UID, email="Khalil.Hendricks@Gmail.com "))

    assert res.outcome is ResolutionOutcome.OVERRIDE


async def test_missing_profile_without_fallback_resolves_to_no_role():
    resolver = RoleResolver(InMemoryProfileStore())

    res = await resolver.resolve(Identity(uid="X", email="teacher@goodtree.school"))

    assert res.user is None
    assert res.outcome is ResolutionOutcome.NO_PROFILE
    assert res.degraded is False


async def test_profile_role_is_taken_verbatim():
    store = InMemoryProfileStore({"u1": {"role": "librarian", "displayName": "Ann Lee"}})
    resolver = RoleResolver(store)

    res = await resolver.resolve(Identity(uid="u1", email="ann@goodtree.school"))

    assert res.outcome is ResolutionOutcome.PROFILE
    assert res.user.role == "librarian"
    assert res.user.name == "Ann Lee"


@pytest.mark.parametrize(
    "profile,display_name,expected",
    [
        ({"role": "teacher", "displayName": "From Doc"}, "From Provider", "From Doc"),
        ({"role": "teacher"}, "From Provider", "From Provider"),
        ({"role": "teacher"}, "", "mary.jones"),
    ],
)
async def test_profile_name_precedence(profile, display_name, expected):
    resolver = RoleResolver(InMemoryProfileStore({"u1": profile}))

    res = await resolver.resolve(Identity(uid="u1", email="mary.jones@goodtree.school", display_name=display_name))

    assert res.user.name == expected


async def test_profile_without_role_keeps_none():
    resolver = RoleResolver(InMemoryProfileStore({"u1": {"displayName": "No Role"}}))

    res = await resolver.resolve(Identity(uid="u1", email="nr@goodtree.school"))

    assert res.outcome is ResolutionOutcome.PROFILE
    assert res.user is not None
    assert res.user.role is None


async def test_slow_store_times_out_and_never_hangs():
    resolver = RoleResolver(SlowStore(delay=5.0, profile={"role": "teacher"}), timeout_seconds=0.05)

    started = time.monotonic()
    res = await resolver.resolve(Identity(uid="u1", email="t@goodtree.school"))
    elapsed = time.monotonic() - started

    assert res.user is None
    assert res.outcome is ResolutionOutcome.STORE_TIMEOUT
    assert res.degraded is True
    assert elapsed < 1.0


async def test_store_error_resolves_to_unavailable():
    resolver = RoleResolver(FailingStore(ProfileStoreError("permission_denied")))

    res = await resolver.resolve(Identity(uid="u1", email="t@goodtree.school"))

    assert res == Resolution(user=None, outcome=ResolutionOutcome.STORE_UNAVAILABLE)
    assert res.degraded is True


async def test_unexpected_store_exception_is_contained():
    resolver = RoleResolver(FailingStore(RuntimeError("boom")))

    res = await resolver.resolve(Identity(uid="u1", email="t@goodtree.school"))

    assert res.outcome is ResolutionOutcome.STORE_UNAVAILABLE


async def test_fallback_email_grants_admin_and_records_cause():
    overrides = RoleOverrides.of(fallback_emails=["office@goodtree.school"])
    resolver = RoleResolver(FailingStore(), overrides)

    res = await resolver.resolve(Identity(uid="u9", email="office@goodtree.school"))

    assert res.outcome is ResolutionOutcome.FALLBACK
    assert res.cause is ResolutionOutcome.STORE_UNAVAILABLE
    assert res.user.role == "admin"
    assert res.user.name == "Office"
    assert res.degraded is True


async def test_fallback_applies_when_profile_missing():
    overrides = RoleOverrides.of(fallback_emails=["office@goodtree.school"])
    resolver = RoleResolver(InMemoryProfileStore(), overrides)

    res = await resolver.resolve(Identity(uid="u9", email="office@goodtree.school", display_name="School Office"))

    assert res.outcome is ResolutionOutcome.FALLBACK
    assert res.cause is ResolutionOutcome.NO_PROFILE
    assert res.user.name == "School Office"
    assert res.degraded is False


async def test_existing_profile_wins_over_fallback_email():
    overrides = RoleOverrides.of(fallback_emails=["office@goodtree.school"])
    store = InMemoryProfileStore({"u9": {"role": "manager"}})
    resolver = RoleResolver(store, overrides)

    res = await resolver.resolve(Identity(uid="u9", email="office@goodtree.school"))

    assert res.outcome is ResolutionOutcome.PROFILE
    assert res.user.role == "manager"


def test_overrides_parse_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("GT_ADMIN_BYPASS", f" {BOOTSTRAP_UID}:{BOOTSTRAP_EMAIL.upper()} , broken-entry,:x@y")
    monkeypatch.setenv("GT_ADMIN_FALLBACK_EMAILS", "Office@GoodTree.school, ,")

    overrides = RoleOverrides.from_env()

    assert overrides.bypass == frozenset({(BOOTSTRAP_UID, BOOTSTRAP_EMAIL)})
    assert overrides.fallback_emails == frozenset({"office@goodtree.school"})
    assert overrides.configured is True


def test_overrides_empty_by_default():
    overrides = RoleOverrides.from_env()

    assert overrides.configured is False
    assert overrides.falls_back(Identity(uid="u", email="")) is False
