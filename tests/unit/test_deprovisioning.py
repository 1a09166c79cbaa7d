import json

import pytest

from onboarding.core.deprovisioning import clear_users
from onboarding.core.identity import IdentityAPIError
from onboarding.core.store import ProfileRepository


@pytest.fixture()
def profiles(database):
    return ProfileRepository(database)


def _populate(gateway, database, count):
    uids = []
    for i in range(count):
        account = gateway.add_account(f"user{i}@example.com", "User", str(i))
        database.set(f"users/{account.uid}", {"firstName": "User", "lastName": str(i)})
        uids.append(account.uid)
    return uids


def test_only_caller_left_deletes_nothing(gateway, profiles, admin):
    assert clear_users(gateway, profiles, admin, page_size=2) == 0
    assert list(gateway.accounts) == [admin.uid]
    assert gateway.deleted == []


def test_deletes_everyone_but_caller_across_pages(gateway, database, profiles, admin):
    uids = _populate(gateway, database, 7)

    deleted = clear_users(gateway, profiles, admin, page_size=2, max_workers=3)

    assert deleted == 7
    assert list(gateway.accounts) == [admin.uid]
    assert sorted(gateway.deleted) == sorted(uids)
    assert not any(path.startswith("users/") for path in database.nodes)


def test_caller_in_the_middle_of_the_listing(gateway, database, profiles):
    _populate(gateway, database, 3)
    admin = gateway.add_account("admin@example.com", claims={"isAdmin": True}, uid="admin-uid")
    _populate(gateway, database, 3)

    assert clear_users(gateway, profiles, admin, page_size=2) == 6
    assert list(gateway.accounts) == ["admin-uid"]


def test_offset_paging_restarts_from_first_page(gateway, database, profiles, admin):
    _populate(gateway, database, 5)

    clear_users(gateway, profiles, admin, page_size=2)

    # Deleting a page shifts later accounts forward; the walk starts over until a pass deletes nothing
    assert gateway.list_calls.count(None) >= 2


def test_delete_failure_propagates(gateway, database, profiles, admin):
    _populate(gateway, database, 3)
    gateway.failures["delete_account"] = IdentityAPIError(403, "Forbidden", "/users")

    with pytest.raises(IdentityAPIError):
        clear_users(gateway, profiles, admin, page_size=2)
    assert admin.uid in gateway.accounts


def test_audit_event_records_count(gateway, database, profiles, admin, temp_audit_dir):
    _, audit_file = temp_audit_dir
    _populate(gateway, database, 2)

    clear_users(gateway, profiles, admin, page_size=10)

    event = json.loads(audit_file.read_text().splitlines()[-1])
    assert event["event_type"] == "users_cleared"
    assert event["details"] == {"deleted": 2}
    assert event["operator"] == admin.uid
