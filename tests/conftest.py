"""Pytest shared fixtures: in-memory identity provider, database and mail transport."""
import itertools
import pathlib
import sys
import threading
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from onboarding.config.settings import AppConfig
from onboarding.core import build_services
from onboarding.core.identity import IdentityAPIError, InvalidTokenError
from onboarding.core.identity.exceptions import AccountNotFoundError
from onboarding.core.models import Account, AccountPage, display_name
from onboarding.core.store import InviteRepository, ProfileRepository, StoreConflictError
from onboarding.flask_app import create_app
from scripts import audit


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting live endpoints.

    Tests that exercise the HTTP adapters patch ``requests`` themselves, after
    this fixture has run.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _blocked(*args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP call in unit test: {args[:2]}")

    monkeypatch.setattr(requests, "request", _blocked)
    monkeypatch.setattr(requests, "post", _blocked)
    monkeypatch.setattr(requests, "get", _blocked)


@pytest.fixture(autouse=True)
def temp_audit_dir(monkeypatch, tmp_path):
    """Keep audit events of every test in its own directory."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "onboarding-events.jsonl"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return audit_dir, audit_file


# ─────────────────────────────────────────────────────────────────────────────
# In-memory collaborators
# ─────────────────────────────────────────────────────────────────────────────
class FakeGateway:
    """Identity gateway keeping accounts in insertion order, paged by offset."""

    def __init__(self):
        self.accounts: dict[str, Account] = {}
        self.passwords: dict[str, str] = {}
        self.tokens: dict[str, dict] = {}
        self.failures: dict[str, Exception] = {}
        self.deleted: list[str] = []
        self.list_calls: list[Optional[str]] = []
        self._ids = itertools.count(1)

    def _maybe_fail(self, operation: str) -> None:
        error = self.failures.get(operation)
        if error is not None:
            raise error

    def add_account(self, email, first="Papa", last="Roach", claims=None, uid=None) -> Account:
        uid = uid or f"uid-{next(self._ids)}"
        account = Account(
            uid=uid,
            email=email,
            display_name=display_name(first, last),
            custom_claims=dict(claims or {}),
        )
        self.accounts[uid] = account
        return account

    def issue_token(self, uid: str, token: Optional[str] = None) -> str:
        token = token or f"token-for-{uid}"
        self.tokens[token] = {"sub": uid}
        return token

    def verify_token(self, token):
        self._maybe_fail("verify_token")
        if token not in self.tokens:
            raise InvalidTokenError("Invalid signature (token tampered or wrong key)")
        return dict(self.tokens[token])

    def get_account(self, uid):
        self._maybe_fail("get_account")
        return self.accounts.get(uid)

    def get_account_by_email(self, email):
        self._maybe_fail("get_account_by_email")
        for account in self.accounts.values():
            if (account.email or "").lower() == email.lower():
                return account
        return None

    def list_accounts(self, page_token=None, max_results=1000):
        self._maybe_fail("list_accounts")
        self.list_calls.append(page_token)
        first = int(page_token) if page_token else 0
        accounts = list(self.accounts.values())[first:first + max_results]
        next_token = str(first + len(accounts)) if len(accounts) >= max_results else None
        return AccountPage(accounts=accounts, next_page_token=next_token)

    def create_account(self, email, first_name=None, last_name=None):
        self._maybe_fail("create_account")
        if self.get_account_by_email(email):
            raise IdentityAPIError(409, "User exists with same email", "/users")
        return self.add_account(email, first_name, last_name)

    def set_custom_claims(self, uid, claims):
        self._maybe_fail("set_custom_claims")
        if uid not in self.accounts:
            raise AccountNotFoundError(uid)
        self.accounts[uid].custom_claims = {k: v for k, v in claims.items() if v is not None}

    def update_account(self, uid, *, email=None, password=None, first_name=None, last_name=None):
        self._maybe_fail("update_account")
        account = self.accounts.get(uid)
        if account is None:
            raise AccountNotFoundError(uid)
        if email is not None:
            account.email = email
        if first_name is not None or last_name is not None:
            account.display_name = display_name(first_name, last_name)
        if password is not None:
            self.passwords[uid] = password

    def delete_account(self, uid):
        self._maybe_fail("delete_account")
        self.deleted.append(uid)
        self.accounts.pop(uid, None)


class FakeDatabase:
    """Realtime database tree keyed by full node path, with per-node ETags."""

    def __init__(self):
        self.nodes: dict[str, object] = {}
        self.versions: dict[str, int] = {}
        self.failures: dict[str, Exception] = {}
        self._keys = itertools.count(1)
        self._lock = threading.Lock()

    def _maybe_fail(self, operation: str) -> None:
        error = self.failures.get(operation)
        if error is not None:
            raise error

    def _touch(self, path: str) -> None:
        self.versions[path] = self.versions.get(path, 0) + 1

    def etag(self, path: str) -> str:
        if path not in self.nodes:
            return "null_etag"
        return f"{path}@{self.versions[path]}"

    def get(self, path):
        self._maybe_fail("get")
        value = self.nodes.get(path)
        return dict(value) if isinstance(value, dict) else value

    def get_with_etag(self, path):
        return self.get(path), self.etag(path)

    def set(self, path, value):
        self._maybe_fail("set")
        self.nodes[path] = dict(value)
        self._touch(path)

    def update(self, path, values):
        self._maybe_fail("update")
        node = dict(self.nodes.get(path) or {})
        node.update(values)
        self.nodes[path] = node
        self._touch(path)

    def push(self, path, value):
        self._maybe_fail("push")
        key = f"-Ninvite{next(self._keys):04d}"
        self.set(f"{path}/{key}", value)
        return key

    def remove(self, path, if_match=None):
        self._maybe_fail("remove")
        with self._lock:
            if if_match is not None and if_match != self.etag(path):
                raise StoreConflictError(f"Node '{path}' changed since it was read")
            self.nodes.pop(path, None)
            self._touch(path)


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.error: Optional[Exception] = None

    def send(self, message):
        if self.error is not None:
            raise self.error
        self.sent.append(message)


def make_config(**overrides) -> AppConfig:
    base = dict(
        demo_mode=True,
        keycloak_url="http://keycloak.test",
        keycloak_realm="demo",
        keycloak_service_realm="demo",
        keycloak_service_client_id="onboarding-service",
        keycloak_service_client_secret="service-secret",
        keycloak_issuer="http://keycloak.test/realms/demo",
        keycloak_server_url="http://keycloak.test/realms/demo",
        profile_store_url="http://db.test",
        profile_store_namespace="demo-onboarding",
        client_url="https://app.example.com",
        accept_invite_path="accept-invite",
        send_invite_email=True,
        mail_from="noreply@example.com",
        clear_users_page_size=2,
        clear_users_max_workers=4,
        events_webhook_secret="hook-secret",
        audit_log_signing_key="test-signing-key-for-audit-trail",
    )
    base.update(overrides)
    return AppConfig(**base)


# ─────────────────────────────────────────────────────────────────────────────
# Wired services and Flask test client
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def database():
    return FakeDatabase()


@pytest.fixture()
def notifier():
    return FakeNotifier()


@pytest.fixture()
def cfg():
    return make_config()


@pytest.fixture()
def services(cfg, gateway, database, notifier):
    """Services over in-memory fakes; profile writes run inline."""
    return build_services(
        cfg,
        gateway=gateway,
        profiles=ProfileRepository(database, cfg.profiles_path),
        invite_records=InviteRepository(database, cfg.invites_path),
        notifier=notifier,
    )


@pytest.fixture()
def admin(gateway):
    return gateway.add_account("admin@example.com", "Ada", "Admin", {"isAdmin": True}, uid="admin-uid")


@pytest.fixture()
def admin_token(gateway, admin):
    return gateway.issue_token(admin.uid)


@pytest.fixture()
def app(services):
    flask_app = create_app(services=services)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
