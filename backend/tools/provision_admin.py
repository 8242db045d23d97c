"""Provision a staff account and its role document.

Why:
    Sign-in resolves roles from `users/{uid}`. A fresh deployment has no such
    documents, so the first administrator is created here once instead of
    hard-coding an override into the app.

Usage example:

    cd backend
    python -m tools.provision_admin provision --email head@school.example --name "Head Office"
    python -m tools.provision_admin show --email head@school.example

The command signs in (or signs up when the account does not exist yet) through
Firebase Authentication and merges `{uid, email, displayName, role, updatedAt}`
into the profile document using the account's own ID token. Reads
FIREBASE_API_KEY / FIREBASE_PROJECT_ID (and the emulator hosts) from the
environment.
"""
from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import os

import anyio
import click

from identity_access.domain import ALLOWED_ROLES, Identity, normalize_email
from identity_access.profiles import ProfileStoreError
from identity_access.profiles_firestore import FirestoreProfileStore
from identity_access.provider import (
    CredentialRejectedError,
    IdentityProviderError,
    IdentityToolkitClient,
    load_identity_toolkit_config,
)

logger = logging.getLogger("gtstaff.tools.provision")

# Provider answers for "no such account" (classic and email-enumeration-protected projects).
_ACCOUNT_MISSING = frozenset({"email_not_found", "invalid_login_credentials"})


def build_provider() -> IdentityToolkitClient:
    return IdentityToolkitClient(load_identity_toolkit_config())


def build_store() -> FirestoreProfileStore:
    project_id = (os.getenv("FIREBASE_PROJECT_ID") or "").strip()
    if not project_id:
        raise click.ClickException("FIREBASE_PROJECT_ID is not set.")
    return FirestoreProfileStore(project_id=project_id, api_key=os.getenv("FIREBASE_API_KEY") or None)


def _sign_in_or_up(provider: IdentityToolkitClient, *, email: str, password: str, name: str | None) -> tuple[Identity, bool]:
    """Return (identity, created)."""
    try:
        return provider.sign_in_with_password(email=email, password=password), False
    except CredentialRejectedError as exc:
        if exc.code not in _ACCOUNT_MISSING:
            raise
        logger.info("Account not found (%s); creating it", exc.code)
    return provider.sign_up(email=email, password=password, display_name=name), True


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
def cli() -> None:
    """Manage staff role documents."""


@cli.command()
@click.option("--email", required=True, help="Account email address.")
@click.option("--password", prompt=True, hide_input=True, help="Account password (prompted when omitted).")
@click.option("--name", default=None, help="Display name stored in the profile.")
@click.option(
    "--role",
    type=click.Choice(sorted(ALLOWED_ROLES)),
    default="admin",
    show_default=True,
    help="Role written to the profile document.",
)
def provision(email: str, password: str, name: str | None, role: str) -> None:
    """Create or update the account and merge its role into users/{uid}."""
    email = normalize_email(email)
    provider = build_provider()
    store = build_store()
    try:
        identity, created = _sign_in_or_up(provider, email=email, password=password, name=name)
    except IdentityProviderError as exc:
        raise click.ClickException(f"Sign-in failed: {exc.code}")

    doc = {
        "uid": identity.uid,
        "email": identity.email or email,
        "displayName": name or identity.display_name or (identity.email or email).split("@")[0],
        "role": role,
        "updatedAt": datetime.now(timezone.utc),
    }
    try:
        anyio.run(_merge_profile, store, identity, doc)
    except ProfileStoreError as exc:
        raise click.ClickException(f"Profile write failed: {exc.code}")
    click.echo(f"{'Created' if created else 'Updated'} {doc['email']} (uid={identity.uid}) with role {role}.")


async def _merge_profile(store, identity: Identity, doc: dict) -> None:
    await store.set_profile(identity.uid, doc, merge=True, id_token=identity.id_token)


@cli.command()
@click.option("--email", required=True, help="Account email address.")
@click.option("--password", prompt=True, hide_input=True, help="Account password (prompted when omitted).")
def show(email: str, password: str) -> None:
    """Sign in and print the stored profile document."""
    provider = build_provider()
    store = build_store()
    try:
        identity = provider.sign_in_with_password(email=normalize_email(email), password=password)
    except IdentityProviderError as exc:
        raise click.ClickException(f"Sign-in failed: {exc.code}")
    try:
        profile = anyio.run(_read_profile, store, identity)
    except ProfileStoreError as exc:
        raise click.ClickException(f"Profile read failed: {exc.code}")
    if profile is None:
        click.echo(f"No profile document for uid={identity.uid}.")
        return
    click.echo(json.dumps(profile, indent=2, sort_keys=True, default=str))


async def _read_profile(store, identity: Identity):
    return await store.get_profile(identity.uid, id_token=identity.id_token)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    cli()


if __name__ == "__main__":  # pragma: no cover - manual entry
    main()
