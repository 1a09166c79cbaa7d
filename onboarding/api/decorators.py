"""
Flask helpers for the onboarding functions.

Admin endpoints carry the caller's identity token in the JSON body field
``token`` (the web client posts it alongside the form). An
``Authorization: Bearer`` header is accepted when the body has none.
"""

import logging
from functools import wraps
from typing import Any, Dict

from flask import current_app, g, request

from onboarding.core import Services
from onboarding.core.errors import ValidationError

logger = logging.getLogger(__name__)

EXTENSION_KEY = "onboarding"


def get_services() -> Services:
    """Services wired into the current app by ``create_app``."""
    return current_app.extensions[EXTENSION_KEY]


def json_body() -> Dict[str, Any]:
    """Request body as a dict; anything else is a 400."""
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def extract_admin_token(payload: Dict[str, Any]) -> str:
    token = payload.get("token")
    if isinstance(token, str) and token:
        return token

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    return ""


def require_admin(fn):
    """
    Decorator to require an administrator identity token.

    The guard raises ``AccessDeniedError`` (400/403) which the error handlers
    turn into ``{"message": ...}``. On success the admin account is available
    as ``g.admin``.

    Example:
        @bp.route("/clearUsers", methods=["POST"])
        @require_admin
        def clear_users():
            ...
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        token = extract_admin_token(json_body())
        g.admin = get_services().guard.check(token)
        logger.debug(f"Admin {g.admin.uid} authorized for {request.path}")
        return fn(*args, **kwargs)

    return wrapper
