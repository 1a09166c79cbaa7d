"""Liveness and readiness endpoints for the container orchestrator."""
from flask import Blueprint, current_app

from onboarding.api.decorators import EXTENSION_KEY

bp = Blueprint("health", __name__)

TEXT = {"Content-Type": "text/plain"}


@bp.route("/health")
def health_check():
    return ("ok", 200, TEXT)


@bp.route("/ready")
def readiness_check():
    """Ready once the onboarding services are wired; providers are not probed."""
    services = current_app.extensions.get(EXTENSION_KEY)
    if services is None or services.gateway is None or services.profiles is None:
        return ("not ready", 503, TEXT)
    return ("ready", 200, TEXT)
