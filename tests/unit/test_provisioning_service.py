"""Email availability, provisioning, admin grant and display name sync."""
import json
import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from onboarding.core.errors import OnboardingError
from onboarding.core.identity import IdentityAPIError, IdentityUnavailableError
from onboarding.core.provisioning_service import ProvisioningService
from onboarding.core.store import ProfileRepository, StoreUnavailableError


@pytest.fixture()
def profiles(database):
    return ProfileRepository(database)


@pytest.fixture()
def provisioning(gateway, profiles):
    return ProvisioningService(gateway, profiles)


def _events(temp_audit_dir):
    _, audit_file = temp_audit_dir
    return [json.loads(line) for line in audit_file.read_text().splitlines()]


# ─────────────────────────────────────────────────────────────────────────────
# Email availability
# ─────────────────────────────────────────────────────────────────────────────
def test_unregistered_email_is_available(provisioning):
    assert provisioning.email_is_available("new@example.com") is True


def test_registered_email_is_unavailable(provisioning, gateway):
    gateway.add_account("taken@example.com")
    assert provisioning.email_is_available("taken@example.com") is False


@pytest.mark.parametrize("error", [IdentityAPIError(500, "boom", "/users"), IdentityUnavailableError("down")])
def test_lookup_error_fails_open(provisioning, gateway, error, caplog):
    gateway.failures["get_account_by_email"] = error
    assert provisioning.email_is_available("any@example.com") is True
    assert "treating as available" in caplog.text


# ─────────────────────────────────────────────────────────────────────────────
# Provisioning
# ─────────────────────────────────────────────────────────────────────────────
def test_provision_user_creates_account_and_profile(provisioning, gateway, database, temp_audit_dir):
    account = provisioning.provision_user("papa@example.com", "Papa", "Roach", {"isMember": True}, operator="admin-uid")

    assert account.display_name == "Papa Roach"
    assert gateway.accounts[account.uid].custom_claims == {"isMember": True}

    profile = database.nodes[f"users/{account.uid}"]
    assert profile["email"] == "papa@example.com"
    assert profile["displayName"] == "Papa Roach"
    assert isinstance(profile["refreshTime"], int)

    event = _events(temp_audit_dir)[-1]
    assert event["event_type"] == "user_created"
    assert event["operator"] == "admin-uid"
    assert event["signature"]


def test_provision_user_without_claims(provisioning, gateway):
    account = provisioning.provision_user("plain@example.com", "Plain", "User")
    assert gateway.accounts[account.uid].custom_claims == {}


def test_provider_failure_is_500(provisioning, gateway):
    gateway.failures["create_account"] = IdentityAPIError(409, "User exists", "/users")
    with pytest.raises(OnboardingError) as exc:
        provisioning.provision_user("papa@example.com", "Papa", "Roach")
    assert (exc.value.status, exc.value.message) == (500, "Failed to create user")


def test_profile_write_failure_is_only_logged(provisioning, gateway, database, caplog):
    database.failures["set"] = StoreUnavailableError("db down")

    account = provisioning.provision_user("papa@example.com", "Papa", "Roach")

    assert account.uid in gateway.accounts
    assert "Profile write" in caplog.text


def test_profile_write_on_executor(gateway, profiles, database):
    with ThreadPoolExecutor(max_workers=1) as executor:
        provisioning = ProvisioningService(gateway, profiles, executor=executor)
        account = provisioning.provision_user("papa@example.com", "Papa", "Roach")
    assert database.nodes[f"users/{account.uid}"]["displayName"] == "Papa Roach"


# ─────────────────────────────────────────────────────────────────────────────
# Admin role
# ─────────────────────────────────────────────────────────────────────────────
def test_grant_admin_merges_claims(provisioning, gateway, database):
    member = gateway.add_account("member@example.com", claims={"isMember": True})
    database.set(f"users/{member.uid}", {"firstName": "Papa", "lastName": "Roach", "displayName": "Papa Roach"})

    provisioning.grant_admin_role("member@example.com", operator="admin-uid")

    assert gateway.accounts[member.uid].custom_claims == {"isMember": True, "isAdmin": True}
    profile = database.nodes[f"users/{member.uid}"]
    assert profile["firstName"] == "Papa"
    assert "refreshTime" in profile


def test_grant_admin_unknown_email(provisioning):
    with pytest.raises(OnboardingError) as exc:
        provisioning.grant_admin_role("ghost@example.com")
    assert (exc.value.status, exc.value.message) == (400, "No user found for email")


# ─────────────────────────────────────────────────────────────────────────────
# Post-creation sync
# ─────────────────────────────────────────────────────────────────────────────
def test_sync_display_name_recomputes(provisioning, database):
    database.set("users/u-9", {"firstName": "Papa", "lastName": "Roach", "displayName": "stale"})

    assert provisioning.sync_display_name("u-9") is True
    assert database.nodes["users/u-9"]["displayName"] == "Papa Roach"


def test_sync_display_name_profile_not_ready(provisioning, database, caplog):
    caplog.set_level(logging.INFO)
    assert provisioning.sync_display_name("u-404") is False
    assert "not ready" in caplog.text
    assert "users/u-404" not in database.nodes


def test_sync_display_name_skips_profile_without_names(provisioning, database, caplog):
    caplog.set_level(logging.INFO)
    database.set("users/u-1", {"refreshTime": 1})

    assert provisioning.sync_display_name("u-1") is False
    assert database.nodes["users/u-1"] == {"refreshTime": 1}
    assert "not ready" in caplog.text


def test_sync_display_name_store_failure_logged(provisioning, database):
    database.failures["get"] = StoreUnavailableError("db down")
    assert provisioning.sync_display_name("u-9") is False
