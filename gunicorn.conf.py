"""Gunicorn configuration for the onboarding functions.

Secret Loading (post_fork hook):
    /run/secrets (Docker secrets) are copied into the worker environment for
    variables not already set, so settings.py sees them even where a secret
    file name differs from its variable name.
"""
import os
from pathlib import Path

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
wsgi_app = "onboarding.flask_app:create_app()"

# Docker secret file -> environment variable
SECRET_ENV_MAPPING = {
    "keycloak_service_client_secret": "KEYCLOAK_SERVICE_CLIENT_SECRET",
    "profile_store_auth": "PROFILE_STORE_AUTH",
    "smtp_password": "SMTP_PASSWORD",
    "sendgrid_api_key": "SENDGRID_API_KEY",
    "events_webhook_secret": "EVENTS_WEBHOOK_SECRET",
    "audit_log_signing_key": "AUDIT_LOG_SIGNING_KEY",
}


def post_fork(server, worker):
    """
    Called just after a worker has been forked.

    Loads Docker secrets into the environment. A missing secrets directory is
    normal outside Docker (environment variables are used directly).
    """
    secrets_dir = Path("/run/secrets")
    if not secrets_dir.is_dir():
        worker.log.info("No /run/secrets mount, using environment variables")
        return

    loaded = 0
    for secret_name, env_name in SECRET_ENV_MAPPING.items():
        if os.environ.get(env_name):  # Skip if already set
            continue
        secret_file = secrets_dir / secret_name
        if not secret_file.is_file():
            continue
        try:
            value = secret_file.read_text().strip()
        except OSError as exc:
            worker.log.error(f"Failed to read secret '{secret_name}': {exc}")
            continue
        if value:
            os.environ[env_name] = value
            loaded += 1

    worker.log.info(f"Loaded {loaded} secrets from /run/secrets")
