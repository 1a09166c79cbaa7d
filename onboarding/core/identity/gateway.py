"""Account operations against Keycloak, exposed as the identity gateway.

Custom claims are stored as user attributes named ``claims.<name>`` holding a
single string value. ``"true"``/``"false"`` round-trip as booleans and a claim
set to ``None`` is removed. The account's username mirrors its email.
"""
from __future__ import annotations
import logging
from typing import Any, Mapping, Optional

from ..models import Account, AccountPage, ClaimValue, display_name
from .client import KeycloakClient
from .exceptions import AccountNotFoundError, IdentityAPIError
from .tokens import TokenVerifier

logger = logging.getLogger(__name__)

CLAIM_ATTRIBUTE_PREFIX = "claims."
DEFAULT_PAGE_SIZE = 1000


def decode_claims(attributes: Optional[Mapping[str, list]]) -> dict[str, ClaimValue]:
    """Extract custom claims from a Keycloak attribute map."""
    claims: dict[str, ClaimValue] = {}
    for key, values in (attributes or {}).items():
        if not key.startswith(CLAIM_ATTRIBUTE_PREFIX) or not values:
            continue
        value = values[0]
        if value == "true":
            claims[key[len(CLAIM_ATTRIBUTE_PREFIX):]] = True
        elif value == "false":
            claims[key[len(CLAIM_ATTRIBUTE_PREFIX):]] = False
        else:
            claims[key[len(CLAIM_ATTRIBUTE_PREFIX):]] = value
    return claims


def encode_claims(
    claims: Mapping[str, Optional[ClaimValue]],
    attributes: Optional[Mapping[str, list]] = None,
) -> dict[str, list]:
    """Replace the claim attributes in ``attributes`` with ``claims``."""
    encoded = {
        key: list(values)
        for key, values in (attributes or {}).items()
        if not key.startswith(CLAIM_ATTRIBUTE_PREFIX)
    }
    for name, value in claims.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        encoded[f"{CLAIM_ATTRIBUTE_PREFIX}{name}"] = [str(value)]
    return encoded


def to_account(user_rep: Mapping[str, Any]) -> Account:
    first, last = user_rep.get("firstName"), user_rep.get("lastName")
    return Account(
        uid=user_rep["id"],
        email=user_rep.get("email"),
        display_name=display_name(first, last) if first or last else None,
        disabled=not user_rep.get("enabled", True),
        custom_claims=decode_claims(user_rep.get("attributes")),
    )


class IdentityGateway:
    """Account lifecycle and token verification for one realm."""

    def __init__(self, client: KeycloakClient, realm: str, verifier: TokenVerifier):
        self.client = client
        self.realm = realm
        self.verifier = verifier

    @property
    def _users_path(self) -> str:
        return f"/admin/realms/{self.realm}/users"

    # ─────────────────────────────────────────────────────────────────────
    # Tokens
    # ─────────────────────────────────────────────────────────────────────
    def verify_token(self, token: str) -> dict[str, Any]:
        """Return the verified token claims (``sub`` is the account id)."""
        return self.verifier.verify(token)

    # ─────────────────────────────────────────────────────────────────────
    # Look-ups (absence is ``None``, never an exception)
    # ─────────────────────────────────────────────────────────────────────
    def _get_user_rep(self, uid: str) -> Optional[dict]:
        resp = self.client.get(f"{self._users_path}/{uid}", allow_status=(404,))
        if resp.status_code == 404:
            return None
        return resp.json()

    def get_account(self, uid: str) -> Optional[Account]:
        user_rep = self._get_user_rep(uid)
        return to_account(user_rep) if user_rep else None

    def get_account_by_email(self, email: str) -> Optional[Account]:
        resp = self.client.get(self._users_path, params={"email": email, "exact": "true"})
        wanted = email.strip().lower()
        for user_rep in resp.json():
            if (user_rep.get("email") or "").lower() == wanted:
                return to_account(user_rep)
        return None

    def list_accounts(self, page_token: Optional[str] = None, max_results: int = DEFAULT_PAGE_SIZE) -> AccountPage:
        """Return one page of accounts; the continuation token is the next offset."""
        first = int(page_token) if page_token else 0
        resp = self.client.get(
            self._users_path,
            params={"first": first, "max": max_results, "briefRepresentation": "true"},
        )
        users = resp.json()
        next_token = str(first + len(users)) if len(users) >= max_results else None
        return AccountPage(accounts=[to_account(u) for u in users], next_page_token=next_token)

    # ─────────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────────
    def create_account(self, email: str, first_name: Optional[str] = None, last_name: Optional[str] = None) -> Account:
        payload = {
            "username": email,
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
            "enabled": True,
            "emailVerified": False,
        }
        resp = self.client.post(self._users_path, json=payload)

        location = resp.headers.get("Location", "")
        uid = location.rstrip("/").rsplit("/", 1)[-1] if location else ""
        if not uid:
            created = self.get_account_by_email(email)
            if not created:
                raise IdentityAPIError(resp.status_code, "Account created but not found", self._users_path)
            return created

        logger.info(f"Account created (uid={uid})")
        return Account(
            uid=uid,
            email=email,
            display_name=display_name(first_name, last_name) if first_name or last_name else None,
        )

    def set_custom_claims(self, uid: str, claims: Mapping[str, Optional[ClaimValue]]) -> None:
        """Replace the account's custom claims; ``None`` values are dropped."""
        user_rep = self._get_user_rep(uid)
        if user_rep is None:
            raise AccountNotFoundError(f"Account '{uid}' not found in realm '{self.realm}'")

        user_rep["attributes"] = encode_claims(claims, user_rep.get("attributes"))
        self.client.put(f"{self._users_path}/{uid}", json=user_rep)
        logger.info(f"Custom claims set for {uid}: {sorted(k for k, v in claims.items() if v is not None)}")

    def update_account(
        self,
        uid: str,
        *,
        email: Optional[str] = None,
        password: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> None:
        user_rep = self._get_user_rep(uid)
        if user_rep is None:
            raise AccountNotFoundError(f"Account '{uid}' not found in realm '{self.realm}'")

        if email is not None:
            user_rep["email"] = email
            user_rep["username"] = email
        if first_name is not None:
            user_rep["firstName"] = first_name
        if last_name is not None:
            user_rep["lastName"] = last_name
        self.client.put(f"{self._users_path}/{uid}", json=user_rep)

        if password is not None:
            self.client.put(
                f"{self._users_path}/{uid}/reset-password",
                json={"type": "password", "temporary": False, "value": password},
            )

    def delete_account(self, uid: str) -> None:
        """Delete an account; deleting an absent id is a no-op."""
        resp = self.client.delete(f"{self._users_path}/{uid}", allow_status=(404,))
        if resp.status_code == 404:
            logger.info(f"Account {uid} already deleted")
