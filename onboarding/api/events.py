"""Identity provider event hooks."""
import hmac
import logging
from typing import Optional

from flask import Blueprint, request

from onboarding.core.errors import OnboardingError

from .decorators import get_services

logger = logging.getLogger(__name__)

bp = Blueprint("events", __name__, url_prefix="/events")

WEBHOOK_SECRET_HEADER = "X-Webhook-Secret"


def _event_user_id(event: dict) -> Optional[str]:
    """Account id from ``{"userId"}`` or an admin event ``{"resourcePath": "users/<id>"}``."""
    user_id = event.get("userId")
    if isinstance(user_id, str) and user_id:
        return user_id

    resource_path = event.get("resourcePath")
    if isinstance(resource_path, str) and resource_path.startswith("users/"):
        return resource_path.split("/")[1] or None
    return None


@bp.route("/account-created", methods=["POST"])
def account_created():
    """Sync the display name of a newly created account. Always 204 once authenticated."""
    expected = get_services().cfg.events_webhook_secret
    submitted = request.headers.get(WEBHOOK_SECRET_HEADER, "")
    if not expected or not hmac.compare_digest(expected.encode(), submitted.encode()):
        logger.warning("Rejected account-created event with invalid webhook secret")
        raise OnboardingError(401, "Invalid webhook secret")

    event = request.get_json(silent=True)
    uid = _event_user_id(event) if isinstance(event, dict) else None
    if not uid:
        logger.warning("Account-created event without a user id, ignoring")
        return "", 204

    get_services().provisioning.sync_display_name(uid)
    return "", 204
