"""Bulk deprovisioning: delete every account except the caller's own."""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor, wait

from scripts import audit

from .identity import IdentityGateway
from .models import Account
from .store import ProfileRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_WORKERS = 32


def _delete_user(gateway: IdentityGateway, profiles: ProfileRepository, uid: str) -> None:
    gateway.delete_account(uid)
    profiles.remove(uid)


def _clear_pass(
    gateway: IdentityGateway,
    profiles: ProfileRepository,
    keep_uid: str,
    page_size: int,
    pool: ThreadPoolExecutor,
) -> int:
    """Walk all pages once, deleting each page concurrently before fetching the next."""
    deleted = 0
    page_token = None
    while True:
        page = gateway.list_accounts(page_token, max_results=page_size)
        uids = [account.uid for account in page.accounts if account.uid != keep_uid]

        futures = [pool.submit(_delete_user, gateway, profiles, uid) for uid in uids]
        wait(futures)
        for future in futures:
            # Re-raise the first failure once the whole page has settled
            future.result()
        deleted += len(uids)

        if not page.next_page_token:
            return deleted
        page_token = page.next_page_token


def clear_users(
    gateway: IdentityGateway,
    profiles: ProfileRepository,
    admin: Account,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> int:
    """Delete all accounts and their profiles except ``admin``'s.

    Listing is offset based, so deleting shifts later pages forward. Passes
    restart from the first page until one deletes nothing.

    Returns:
        Number of accounts deleted

    Raises:
        IdentityError, StoreError: First failure of a page; pages before it
            stay deleted
    """
    total = 0
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="clear-users") as pool:
        while True:
            deleted = _clear_pass(gateway, profiles, admin.uid, page_size, pool)
            total += deleted
            if deleted == 0:
                break
            logger.info(f"Clear pass deleted {deleted} accounts")

    logger.info(f"Cleared {total} accounts, kept {admin.uid}")
    audit.safe_log_event("users_cleared", admin.email or admin.uid, operator=admin.uid, details={"deleted": total})
    return total
