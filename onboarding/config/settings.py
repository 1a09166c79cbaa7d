"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

MAIL_SERVICES = ("SMTP", "GMAIL", "SENDGRID")
EMAIL_POLICIES = ("claim", "account")


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _env_flag(var_name: str, default: bool = False) -> bool:
    return os.environ.get(var_name, str(default)).strip().lower() == "true"


@dataclass
class AppConfig:
    """Application configuration container."""
    demo_mode: bool

    # Identity provider (Keycloak)
    keycloak_url: str = ""
    keycloak_realm: str = "demo"
    keycloak_service_realm: str = "demo"
    keycloak_service_client_id: str = "onboarding-service"
    keycloak_service_client_secret: str = ""
    keycloak_issuer: str = ""
    keycloak_server_url: str = ""

    # Profile store (realtime database)
    profile_store_url: str = ""
    profile_store_auth: str = ""
    profile_store_namespace: str = ""
    profiles_path: str = "users"
    invites_path: str = "invites"

    # Invitations
    client_url: str = ""
    accept_invite_path: str = "accept-invite"
    send_invite_email: bool = False
    accept_invite_email_policy: str = "claim"
    invite_token_length: int = 128

    # Mail
    mail_service: str = "SMTP"
    mail_from: str = ""
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    sendgrid_api_key: str = ""

    # Bulk deprovisioning
    clear_users_page_size: int = 1000
    clear_users_max_workers: int = 32

    # Webhooks / audit
    events_webhook_secret: str = ""
    audit_log_signing_key: str = ""

    @property
    def accept_invite_base_url(self) -> str:
        """Base URL the invite id and token are appended to."""
        return f"{self.client_url.rstrip('/')}/{self.accept_invite_path.strip('/')}"


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        os.environ[var_name] = demo_default
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_flag("DEMO_MODE")

    # ─────────────────────────────────────────────────────────────────────────
    # Secrets: /run/secrets > environment variables > demo defaults
    # ─────────────────────────────────────────────────────────────────────────
    keycloak_service_client_secret = _load_secret_from_file(
        "keycloak_service_client_secret",
        "KEYCLOAK_SERVICE_CLIENT_SECRET",
    )
    if not keycloak_service_client_secret:
        if not demo_mode:
            raise RuntimeError("KEYCLOAK_SERVICE_CLIENT_SECRET not found in /run/secrets or environment")
        keycloak_service_client_secret = os.environ.get(
            "KEYCLOAK_SERVICE_CLIENT_SECRET_DEMO", "demo-service-secret"
        )
        print("[demo-mode] Using demo KEYCLOAK_SERVICE_CLIENT_SECRET")

    profile_store_auth = _load_secret_from_file("profile_store_auth", "PROFILE_STORE_AUTH") or ""
    smtp_password = _load_secret_from_file("smtp_password", "SMTP_PASSWORD") or ""
    sendgrid_api_key = _load_secret_from_file("sendgrid_api_key", "SENDGRID_API_KEY") or ""
    events_webhook_secret = _load_secret_from_file("events_webhook_secret", "EVENTS_WEBHOOK_SECRET") or ""

    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY")
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key
    elif demo_mode:
        audit_log_signing_key = os.environ.get(
            "AUDIT_LOG_SIGNING_KEY_DEMO", "demo-audit-signing-key-change-in-production"
        )
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key

    # Keycloak
    keycloak_url = _get_or_generate(
        "KEYCLOAK_URL",
        demo_default="http://127.0.0.1:8080",
        demo_mode=demo_mode,
    ).rstrip("/")
    keycloak_realm = os.environ.get("KEYCLOAK_REALM", "demo")
    keycloak_service_realm = os.environ.get("KEYCLOAK_SERVICE_REALM", keycloak_realm)
    keycloak_service_client_id = os.environ.get("KEYCLOAK_SERVICE_CLIENT_ID", "onboarding-service")
    keycloak_issuer = os.environ.get("KEYCLOAK_ISSUER", f"{keycloak_url}/realms/{keycloak_realm}")
    keycloak_server_url = os.environ.get("KEYCLOAK_SERVER_URL", keycloak_issuer)

    # Profile store
    profile_store_url = _get_or_generate(
        "PROFILE_STORE_URL",
        demo_default="http://127.0.0.1:9000",
        demo_mode=demo_mode,
    ).rstrip("/")
    profile_store_namespace = os.environ.get(
        "PROFILE_STORE_NAMESPACE", "demo-onboarding" if demo_mode else ""
    )

    # Invitations
    send_invite_email = _env_flag("SEND_INVITE_EMAIL")
    client_url = _get_or_generate(
        "CLIENT_URL",
        demo_default="http://localhost:3000",
        required=send_invite_email,
        demo_mode=demo_mode,
    )

    accept_invite_email_policy = os.environ.get("ACCEPT_INVITE_EMAIL_POLICY", "claim").strip().lower()
    if accept_invite_email_policy not in EMAIL_POLICIES:
        raise RuntimeError(
            f"ACCEPT_INVITE_EMAIL_POLICY must be one of {', '.join(EMAIL_POLICIES)}, "
            f"got '{accept_invite_email_policy}'"
        )

    mail_service = os.environ.get("MAIL_SERVICE", "SMTP").strip().upper()
    if mail_service not in MAIL_SERVICES:
        raise RuntimeError(f"MAIL_SERVICE must be one of {', '.join(MAIL_SERVICES)}, got '{mail_service}'")

    smtp_user = os.environ.get("SMTP_USER", "")
    mail_from = os.environ.get("MAIL_FROM", smtp_user)

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; realm={keycloak_realm}; client_id={keycloak_service_client_id}")
    print(f"[settings] Profile store={profile_store_url}; send_invite_email={send_invite_email}")

    if demo_mode:
        print("[settings] WARNING: Demo credentials in use. Do not deploy with these defaults.")

    return AppConfig(
        demo_mode=demo_mode,
        keycloak_url=keycloak_url,
        keycloak_realm=keycloak_realm,
        keycloak_service_realm=keycloak_service_realm,
        keycloak_service_client_id=keycloak_service_client_id,
        keycloak_service_client_secret=keycloak_service_client_secret,
        keycloak_issuer=keycloak_issuer,
        keycloak_server_url=keycloak_server_url,
        profile_store_url=profile_store_url,
        profile_store_auth=profile_store_auth,
        profile_store_namespace=profile_store_namespace,
        profiles_path=os.environ.get("PROFILES_PATH", "users").strip("/"),
        invites_path=os.environ.get("INVITES_PATH", "invites").strip("/"),
        client_url=client_url,
        accept_invite_path=os.environ.get("ACCEPT_INVITE_PATH", "accept-invite"),
        send_invite_email=send_invite_email,
        accept_invite_email_policy=accept_invite_email_policy,
        invite_token_length=int(os.environ.get("INVITE_TOKEN_LENGTH", "128")),
        mail_service=mail_service,
        mail_from=mail_from,
        smtp_host=os.environ.get("SMTP_HOST", "smtp.gmail.com"),
        smtp_port=int(os.environ.get("SMTP_PORT", "587")),
        smtp_user=smtp_user,
        smtp_password=smtp_password,
        sendgrid_api_key=sendgrid_api_key,
        clear_users_page_size=int(os.environ.get("CLEAR_USERS_PAGE_SIZE", "1000")),
        clear_users_max_workers=int(os.environ.get("CLEAR_USERS_MAX_WORKERS", "32")),
        events_webhook_secret=events_webhook_secret,
        audit_log_signing_key=audit_log_signing_key or "",
    )
