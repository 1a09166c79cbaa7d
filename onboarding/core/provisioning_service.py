"""
Provisioning Service Layer

Account + profile provisioning shared by the HTTP functions, the invite
workflow and the CLI.

Architecture:
    HTTP functions (/inviteUser, /createUser, ...) ──┐
                                                     ├──> provisioning_service.py ──> identity gateway ──> Keycloak
    scripts/onboarding_cli.py ───────────────────────┘                            └─> profile store ──> realtime database

Features:
    - Email availability check (fail open on look-up errors)
    - Account creation with optional custom claims and a denormalized profile
    - Admin role grant
    - Display name sync for accounts created out of band
"""

from __future__ import annotations
import logging
from concurrent.futures import Executor, Future
from typing import Mapping, Optional

from scripts import audit

from .errors import OnboardingError
from .identity import IdentityError, IdentityGateway
from .models import ADMIN_CLAIM, Account, ClaimValue, build_profile, display_name, now_millis
from .store import ProfileRepository, StoreError

logger = logging.getLogger(__name__)


class ProvisioningService:
    """Create accounts together with their profile records.

    Args:
        gateway: Identity provider access
        profiles: Profile record repository
        executor: When given, profile writes are dispatched on it and not
            awaited; otherwise they run inline. Failures are logged either way.
    """

    def __init__(
        self,
        gateway: IdentityGateway,
        profiles: ProfileRepository,
        executor: Optional[Executor] = None,
    ):
        self.gateway = gateway
        self.profiles = profiles
        self.executor = executor

    # ─────────────────────────────────────────────────────────────────────
    # Email availability
    # ─────────────────────────────────────────────────────────────────────
    def email_is_available(self, email: str) -> bool:
        """True unless an account already uses ``email``.

        Look-up errors count as available: a transient provider failure is
        indistinguishable from "not registered" here.
        """
        try:
            account = self.gateway.get_account_by_email(email)
        except IdentityError as e:
            logger.warning(f"Email look-up failed, treating as available: {e}")
            return True
        return account is None

    # ─────────────────────────────────────────────────────────────────────
    # Provisioning
    # ─────────────────────────────────────────────────────────────────────
    def provision_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        custom_claims: Optional[Mapping[str, ClaimValue]] = None,
        *,
        operator: str = "system",
    ) -> Account:
        """Create an account, tag it with claims and write its profile.

        The account creation and the claim update are two provider calls; a
        failure between them leaves an account without claims. The profile
        write is not compensated if it fails.

        Raises:
            OnboardingError: 500 if the account cannot be created or tagged
        """
        try:
            account = self.gateway.create_account(email, first_name, last_name)
        except IdentityError as e:
            logger.error(f"Failed to create account for {email}: {e}")
            raise OnboardingError(500, "Failed to create user")

        logger.info(f"User created (uid={account.uid})")

        if custom_claims:
            logger.info(f"Updating user {account.uid} with custom claims {sorted(custom_claims)}")
            try:
                self.gateway.set_custom_claims(account.uid, dict(custom_claims))
            except IdentityError as e:
                logger.error(f"Failed to set custom claims for {account.uid}: {e}")
                raise OnboardingError(500, "Failed to create user")
            account.custom_claims = dict(custom_claims)

        self._write_profile(account.uid, build_profile(first_name, last_name, email=email))

        audit.safe_log_event(
            "user_created",
            email,
            operator=operator,
            details={"uid": account.uid, "claims": sorted(custom_claims or {})},
        )
        return account

    def _write_profile(self, uid: str, profile: dict) -> None:
        if self.executor is None:
            try:
                self.profiles.write(uid, profile)
            except StoreError as e:
                logger.error(f"Profile write for {uid} failed: {e}")
            return

        future = self.executor.submit(self.profiles.write, uid, profile)
        future.add_done_callback(lambda f: _log_profile_write(uid, f))

    # ─────────────────────────────────────────────────────────────────────
    # Admin role
    # ─────────────────────────────────────────────────────────────────────
    def grant_admin_role(self, email: str, *, operator: str = "system") -> Account:
        """Flag the account registered for ``email`` as administrator.

        Existing claims are kept; the profile only gets a fresh refreshTime.

        Raises:
            OnboardingError: 400 if no account uses ``email``
        """
        account = self.gateway.get_account_by_email(email)
        if account is None:
            raise OnboardingError(400, "No user found for email")

        claims = dict(account.custom_claims)
        claims[ADMIN_CLAIM] = True
        self.gateway.set_custom_claims(account.uid, claims)
        account.custom_claims = claims

        self.profiles.update(account.uid, {"refreshTime": now_millis()})

        audit.safe_log_event("admin_granted", email, operator=operator, details={"uid": account.uid})
        logger.info(f"Admin role granted to {account.uid}")
        return account

    # ─────────────────────────────────────────────────────────────────────
    # Post-creation sync
    # ─────────────────────────────────────────────────────────────────────
    def sync_display_name(self, uid: str) -> bool:
        """Recompute ``displayName`` from the stored names of a new account.

        Returns False (and only logs) when the profile has not been written
        yet or the store is unreachable; provisioning may still be in flight.
        """
        try:
            profile = self.profiles.get(uid)
            if not profile or not profile.get("firstName") or not profile.get("lastName"):
                logger.info(f"Profile for {uid} not ready, skipping display name sync")
                return False

            self.profiles.update(uid, {
                "displayName": display_name(profile.get("firstName"), profile.get("lastName")),
                "refreshTime": now_millis(),
            })
        except StoreError as e:
            logger.error(f"Error processing user {uid}: {e}")
            return False

        logger.info(f"Processed user {uid}")
        return True


def _log_profile_write(uid: str, future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error(f"Profile write for {uid} failed: {error}")
