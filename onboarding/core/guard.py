"""Admin guard: a bearer token must name an existing account flagged ``isAdmin``."""
from __future__ import annotations
import hashlib
import logging

from .errors import AccessDeniedError
from .identity import IdentityGateway, InvalidTokenError
from .models import Account

logger = logging.getLogger(__name__)


def _token_hash(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()[:12]


class AdminGuard:
    """Resolve a bearer token to an administrator account or refuse.

    Verification failures, tokens without a subject and unknown subjects are
    reported as 400, non-admin accounts as 403. Provider transport errors are
    not caught here.
    """

    def __init__(self, gateway: IdentityGateway):
        self.gateway = gateway

    def check(self, token: str) -> Account:
        if not token:
            raise AccessDeniedError(400, "Invalid token")

        try:
            claims = self.gateway.verify_token(token)
        except InvalidTokenError as e:
            logger.warning(f"Admin token rejected | token_hash={_token_hash(token)} | reason={e}")
            raise AccessDeniedError(400, "Invalid token")

        uid = claims.get("sub")
        if not uid:
            raise AccessDeniedError(400, "Invalid token")

        account = self.gateway.get_account(uid)
        if account is None:
            logger.warning(f"Admin token subject {uid} has no account")
            raise AccessDeniedError(400, "Access denied")

        if not account.is_admin:
            logger.warning(f"Account {uid} is not an admin")
            raise AccessDeniedError(403, "Access denied")

        return account
