"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with all blueprints, CORS and error handlers.
Gunicorn binds ``onboarding.flask_app:create_app()``.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from onboarding.config import AppConfig, load_settings
from onboarding.core import Services, build_services

PROFILE_WRITE_WORKERS = 4


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None, services: Optional[Services] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Settings; loaded from the environment when omitted
        services: Pre-wired services (tests inject in-memory fakes here)
    """
    if services is not None and cfg is None:
        cfg = services.cfg
    cfg = cfg or load_settings()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["DEMO_MODE"] = cfg.demo_mode
    app.logger.setLevel(logging.INFO)

    # Trust X-Forwarded-* headers from the fronting proxy
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    # Functions are called cross-origin from the web client without cookies
    CORS(app, send_wildcard=True, supports_credentials=False)

    if services is None:
        executor = ThreadPoolExecutor(max_workers=PROFILE_WRITE_WORKERS, thread_name_prefix="profile-write")
        services = build_services(cfg, profile_executor=executor)

    from onboarding.api.decorators import EXTENSION_KEY
    app.extensions[EXTENSION_KEY] = services

    # Register blueprints
    from onboarding.api import errors, events, functions, health

    app.register_blueprint(health.bp)
    app.register_blueprint(functions.bp)
    app.register_blueprint(events.bp)

    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    print(f"[flask_app] Functions registered: validateEmail, inviteUser, acceptInvite, createUser, addAdminRole, clearUsers")

    if cfg.demo_mode:
        print("[flask_app] WARNING: Demo mode active - do not deploy with demo credentials")

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
