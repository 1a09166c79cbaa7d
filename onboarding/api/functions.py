"""Onboarding functions: one POST endpoint per operation.

    /validateEmail   public          email availability
    /inviteUser      admin token     issue an invitation
    /acceptInvite    invite token    complete onboarding
    /createUser      admin token     provision an account directly
    /addAdminRole    admin token     grant isAdmin
    /clearUsers      admin token     delete every other account
"""
import logging

from flask import Blueprint, g, jsonify

from onboarding.core.deprovisioning import clear_users as clear_all_users
from onboarding.core.errors import OnboardingError, ValidationError
from onboarding.core.identity import IdentityError
from onboarding.core.store import StoreError
from onboarding.core.validators import parse_role, require_fields, validate_email, validate_name

from .decorators import get_services, json_body, require_admin

logger = logging.getLogger(__name__)

bp = Blueprint("functions", __name__)

EMAIL_UNAVAILABLE = "Email is already in use or has been invited"


def _names(payload):
    return (
        validate_name(payload.get("firstName"), "firstName"),
        validate_name(payload.get("lastName"), "lastName"),
    )


@bp.route("/validateEmail", methods=["POST"])
def validate_email_availability():
    """Report whether an email can still be invited or registered."""
    payload = json_body()
    require_fields(payload, "email")
    email = validate_email(payload["email"])

    if not get_services().provisioning.email_is_available(email):
        raise OnboardingError(400, EMAIL_UNAVAILABLE)
    return jsonify({}), 200


@bp.route("/inviteUser", methods=["POST"])
@require_admin
def invite_user():
    payload = json_body()
    require_fields(payload, "email", "firstName", "lastName")
    email = validate_email(payload["email"])
    first_name, last_name = _names(payload)

    get_services().invites.issue(g.admin, email, first_name, last_name, parse_role(payload.get("role")))
    return jsonify({}), 200


@bp.route("/acceptInvite", methods=["POST"])
def accept_invite():
    """Complete onboarding for the invite identified by ``inviteId`` (or ``key``/``uid``)."""
    payload = json_body()
    invite_id = payload.get("inviteId") or payload.get("key") or payload.get("uid")
    if not isinstance(invite_id, str) or not invite_id.strip():
        raise ValidationError("inviteId is required")
    require_fields(payload, "token", "email", "password", "firstName", "lastName")
    if not isinstance(payload["token"], str) or not isinstance(payload["password"], str):
        raise ValidationError("token and password must be strings")

    email = validate_email(payload["email"])
    first_name, last_name = _names(payload)

    get_services().invites.accept(
        invite_id.strip(),
        payload["token"],
        email,
        payload["password"],
        first_name,
        last_name,
    )
    return jsonify({}), 200


@bp.route("/createUser", methods=["POST"])
@require_admin
def create_user():
    payload = json_body()
    require_fields(payload, "email", "firstName", "lastName")
    email = validate_email(payload["email"])
    first_name, last_name = _names(payload)

    custom_claims = payload.get("customClaims") or {}
    if not isinstance(custom_claims, dict):
        raise ValidationError("customClaims must be an object")

    services = get_services()
    if not services.provisioning.email_is_available(email):
        raise OnboardingError(400, EMAIL_UNAVAILABLE)

    account = services.provisioning.provision_user(
        email, first_name, last_name, custom_claims, operator=g.admin.uid
    )
    return jsonify(account.to_dict()), 200


@bp.route("/addAdminRole", methods=["POST"])
@require_admin
def add_admin_role():
    payload = json_body()
    require_fields(payload, "email")
    email = validate_email(payload["email"])

    get_services().provisioning.grant_admin_role(email, operator=g.admin.uid)
    return "", 200


@bp.route("/clearUsers", methods=["POST"])
@require_admin
def clear_users():
    services = get_services()
    cfg = services.cfg
    try:
        clear_all_users(
            services.gateway,
            services.profiles,
            g.admin,
            page_size=cfg.clear_users_page_size,
            max_workers=cfg.clear_users_max_workers,
        )
    except (IdentityError, StoreError) as e:
        logger.error(f"Clearing users failed: {e}", exc_info=True)
        raise OnboardingError(500, "Failed to clear users")
    return jsonify({}), 200
