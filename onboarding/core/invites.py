"""Invite workflow: issue an invitation, then accept it exactly once.

An invite is ``ISSUED`` while its record is stored and becomes ``CONSUMED``
when acceptance deletes it with an ETag-conditional delete, so two concurrent
acceptances cannot both succeed. The invitee's account carries the same
token in its ``inviteToken`` claim until acceptance clears it.
"""
from __future__ import annotations
import enum
import hmac
import logging
import secrets
import string
from typing import Any, Optional

from scripts import audit

from .errors import OnboardingError
from .identity import IdentityError, IdentityGateway
from .models import INVITE_TOKEN_CLAIM, Account, InviteRecord, IssuedInvite, build_profile
from .notifier import NotificationError, build_invite_message
from .provisioning_service import ProvisioningService
from .store import InviteRepository, ProfileRepository, StoreConflictError, StoreError

logger = logging.getLogger(__name__)

INVITE_TOKEN_LENGTH = 128
TOKEN_ALPHABET = string.ascii_letters + string.digits

ROLE_CLAIMS = {
    "manager": "isManager",
    "client": "isClient",
    "member": "isMember",
}
DEFAULT_ROLE_CLAIM = "isAnonymous"


class EmailCollisionPolicy(str, enum.Enum):
    """How acceptance decides the submitted email belongs to someone else.

    CLAIM: an account exists for the email and has already completed
        onboarding (no ``inviteToken`` claim).
    ACCOUNT: an account exists for the email and it is not the invitee's.
    """
    CLAIM = "claim"
    ACCOUNT = "account"

    def collides(self, existing: Account, invitee: Account) -> bool:
        if self is EmailCollisionPolicy.ACCOUNT:
            return existing.uid != invitee.uid
        return existing.pending_invite_token is None


def role_claims(role: str) -> dict[str, bool]:
    """Map a role selector to the claim flag it grants."""
    return {ROLE_CLAIMS.get(role, DEFAULT_ROLE_CLAIM): True}


def generate_invite_token(length: int = INVITE_TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


class InviteService:
    """Issue and accept invitations."""

    def __init__(
        self,
        gateway: IdentityGateway,
        provisioning: ProvisioningService,
        profiles: ProfileRepository,
        invites: InviteRepository,
        notifier: Any = None,
        *,
        send_invite_email: bool = False,
        accept_invite_base_url: str = "",
        mail_from: str = "",
        token_length: int = INVITE_TOKEN_LENGTH,
        email_policy: EmailCollisionPolicy = EmailCollisionPolicy.CLAIM,
    ):
        self.gateway = gateway
        self.provisioning = provisioning
        self.profiles = profiles
        self.invites = invites
        self.notifier = notifier
        self.send_invite_email = send_invite_email
        self.accept_invite_base_url = accept_invite_base_url.rstrip("/")
        self.mail_from = mail_from
        self.token_length = token_length
        self.email_policy = EmailCollisionPolicy(email_policy)

    def invite_link(self, invite_id: str, token: str) -> str:
        return f"{self.accept_invite_base_url}/{invite_id}/{token}"

    # ─────────────────────────────────────────────────────────────────────
    # Issue
    # ─────────────────────────────────────────────────────────────────────
    def issue(self, admin: Account, email: str, first_name: str, last_name: str, role: str = "") -> IssuedInvite:
        """Create the pending account and invite record, then email the link.

        Raises:
            OnboardingError: 400 if the email is taken or invited, 500 on
                provisioning, store or delivery failure
        """
        if not self.provisioning.email_is_available(email):
            raise OnboardingError(400, "Invitation already sent")

        token = generate_invite_token(self.token_length)
        claims = {**role_claims(role), INVITE_TOKEN_CLAIM: token}
        account = self.provisioning.provision_user(email, first_name, last_name, claims, operator=admin.uid)

        record = InviteRecord(
            token=token,
            inviter=admin.uid,
            email=email,
            first_name=first_name,
            last_name=last_name,
            uid=account.uid,
        )
        try:
            invite_id = self.invites.create(record)
        except StoreError as e:
            logger.error(f"Failed to store invitation for {account.uid}: {e}")
            raise OnboardingError(500, "Failed to store invitation")

        logger.info(f"Invitation {invite_id} issued by {admin.uid} for {account.uid}")
        audit.safe_log_event(
            "invite_issued",
            email,
            operator=admin.uid,
            details={"invite_id": invite_id, "uid": account.uid, "role": role or None},
        )

        issued = IssuedInvite(invite_id=invite_id, account=account)
        if not self.send_invite_email:
            return issued

        issued.link = self.invite_link(invite_id, token)
        message = build_invite_message(account.email or email, self.mail_from, issued.link)
        try:
            self.notifier.send(message)
        except NotificationError as e:
            logger.error(f"Failed to send invitation {invite_id}: {e}")
            raise OnboardingError(500, "Failed to send invitation")

        issued.email_sent = True
        return issued

    # ─────────────────────────────────────────────────────────────────────
    # Accept
    # ─────────────────────────────────────────────────────────────────────
    def accept(
        self,
        invite_id: str,
        token: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> InviteRecord:
        """Activate the invited account with the submitted credentials.

        Raises:
            OnboardingError: 400 not found / token mismatch, 409 already
                accepted / email in use, 500 invitee missing or update failure
        """
        record = self.invites.get(invite_id)
        if record is None:
            raise OnboardingError(400, "Could not find invitation")

        if not hmac.compare_digest(token.encode(), record.token.encode()):
            raise OnboardingError(400, "Tokens do not match")

        invitee = self._find_invitee(record)
        if invitee is None:
            raise OnboardingError(500, "No invited user found")

        if invitee.pending_invite_token is None:
            raise OnboardingError(409, "User has already accepted invitation")

        if self._email_taken(email, invitee):
            raise OnboardingError(409, "Email already in use")

        try:
            consumed = self.invites.consume(record)
        except StoreConflictError:
            raise OnboardingError(409, "User has already accepted invitation")

        self._activate(record, invitee, email, password, first_name, last_name)

        audit.safe_log_event(
            "invite_accepted",
            email,
            operator="invitee",
            details={"invite_id": invite_id, "uid": invitee.uid, "inviter": record.inviter},
        )
        logger.info(f"Invitation {invite_id} accepted by {invitee.uid}")
        return consumed

    def _find_invitee(self, record: InviteRecord) -> Optional[Account]:
        """Invitee by stored uid; records without one fall back to the invited email."""
        try:
            if record.uid:
                return self.gateway.get_account(record.uid)
            return self.gateway.get_account_by_email(record.email)
        except IdentityError as e:
            logger.error(f"Invitee look-up for invite {record.invite_id} failed: {e}")
            return None

    def _email_taken(self, email: str, invitee: Account) -> bool:
        try:
            existing = self.gateway.get_account_by_email(email)
        except IdentityError as e:
            logger.warning(f"Email look-up during acceptance failed, treating as free: {e}")
            return False
        return existing is not None and self.email_policy.collides(existing, invitee)

    def _activate(
        self,
        record: InviteRecord,
        invitee: Account,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> None:
        """Apply the accepted invite; restore it if the account is still pending."""
        claims_cleared = False
        try:
            self.gateway.update_account(
                invitee.uid,
                email=email,
                password=password,
                first_name=first_name,
                last_name=last_name,
            )

            claims: dict[str, Optional[Any]] = dict(invitee.custom_claims)
            claims[INVITE_TOKEN_CLAIM] = None
            self.gateway.set_custom_claims(invitee.uid, claims)
            claims_cleared = True

            self.profiles.write(invitee.uid, build_profile(first_name, last_name, email=email))
        except (IdentityError, StoreError) as e:
            logger.error(f"Accepting invite {record.invite_id} failed for {invitee.uid}: {e}")
            if not claims_cleared:
                self._restore(record)
            raise OnboardingError(500, "Failed to accept invitation")

    def _restore(self, record: InviteRecord) -> None:
        try:
            self.invites.restore(record)
        except StoreError as e:
            logger.error(f"Could not restore invite {record.invite_id}: {e}")
