"""Core Business Logic Module

Onboarding logic independent of the HTTP layer, shared by the Flask
functions and the operator CLI.

Module Structure:
    - identity/         : Keycloak Admin API client, token verification, account gateway
    - store/            : Realtime database client, profile and invite repositories
    - guard.py          : Admin guard (bearer token -> admin account)
    - provisioning_service.py : Email availability, account provisioning, admin grant, display name sync
    - invites.py        : Invite issue / accept workflow
    - deprovisioning.py : Bulk account deletion
    - notifier.py       : Invite email delivery (SMTP, SendGrid)
    - validators.py     : Request payload validation

Usage Pattern:
    services = build_services(load_settings())
    services.invites.issue(admin, "papa@example.com", "Papa", "Smurf", "member")
"""
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional

from .guard import AdminGuard
from .identity import IdentityGateway, build_identity_gateway
from .invites import InviteService
from .notifier import create_notifier
from .provisioning_service import ProvisioningService
from .store import InviteRepository, ProfileRepository, build_repositories


@dataclass
class Services:
    """Wired onboarding collaborators for one application instance."""
    cfg: Any
    gateway: IdentityGateway
    profiles: ProfileRepository
    invite_records: InviteRepository
    guard: AdminGuard
    provisioning: ProvisioningService
    invites: InviteService


def build_services(
    cfg,
    *,
    gateway: Optional[IdentityGateway] = None,
    profiles: Optional[ProfileRepository] = None,
    invite_records: Optional[InviteRepository] = None,
    notifier: Any = None,
    profile_executor: Optional[ThreadPoolExecutor] = None,
) -> Services:
    """Wire services from settings; any collaborator can be supplied instead."""
    gateway = gateway or build_identity_gateway(cfg)
    if profiles is None or invite_records is None:
        built_profiles, built_invites = build_repositories(cfg)
        profiles = profiles or built_profiles
        invite_records = invite_records or built_invites
    if notifier is None and cfg.send_invite_email:
        notifier = create_notifier(cfg)

    provisioning = ProvisioningService(gateway, profiles, executor=profile_executor)
    invites = InviteService(
        gateway,
        provisioning,
        profiles,
        invite_records,
        notifier,
        send_invite_email=cfg.send_invite_email,
        accept_invite_base_url=cfg.accept_invite_base_url,
        mail_from=cfg.mail_from,
        token_length=cfg.invite_token_length,
        email_policy=cfg.accept_invite_email_policy,
    )
    return Services(
        cfg=cfg,
        gateway=gateway,
        profiles=profiles,
        invite_records=invite_records,
        guard=AdminGuard(gateway),
        provisioning=provisioning,
        invites=invites,
    )
