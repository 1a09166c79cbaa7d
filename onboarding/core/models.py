"""Records exchanged between the onboarding services and their providers."""
from __future__ import annotations
import enum
import time
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Union

ClaimValue = Union[bool, str]

ADMIN_CLAIM = "isAdmin"
INVITE_TOKEN_CLAIM = "inviteToken"


def now_millis() -> int:
    """Epoch milliseconds, the resolution ``refreshTime`` is stored with."""
    return int(time.time() * 1000)


def display_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    return f"{first_name} {last_name}"


@dataclass
class Account:
    """Identity provider account as seen by the onboarding flows."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    disabled: bool = False
    custom_claims: dict[str, ClaimValue] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return bool(self.custom_claims.get(ADMIN_CLAIM))

    @property
    def pending_invite_token(self) -> Optional[str]:
        """Invite token claim, present only until onboarding completes."""
        token = self.custom_claims.get(INVITE_TOKEN_CLAIM)
        return token if isinstance(token, str) and token else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "disabled": self.disabled,
            "customClaims": dict(self.custom_claims),
        }


@dataclass
class AccountPage:
    """One page of an account listing."""
    accounts: list[Account]
    next_page_token: Optional[str] = None


def build_profile(
    first_name: str,
    last_name: str,
    email: Optional[str] = None,
    refresh_time: Optional[int] = None,
) -> dict[str, Any]:
    """Full profile record as written to the profile tree."""
    profile: dict[str, Any] = {}
    if email is not None:
        profile["email"] = email
    profile.update({
        "firstName": first_name,
        "lastName": last_name,
        "displayName": display_name(first_name, last_name),
        "refreshTime": refresh_time if refresh_time is not None else now_millis(),
    })
    return profile


class InviteState(str, enum.Enum):
    ISSUED = "issued"
    CONSUMED = "consumed"


@dataclass
class InviteRecord:
    """Pending invitation stored under the invites tree."""
    token: str
    inviter: str
    email: str
    first_name: str
    last_name: str
    uid: Optional[str] = None
    invite_id: Optional[str] = None
    state: InviteState = InviteState.ISSUED
    etag: Optional[str] = None

    @classmethod
    def from_dict(cls, invite_id: str, data: dict[str, Any], etag: Optional[str] = None) -> "InviteRecord":
        return cls(
            token=data.get("token", ""),
            inviter=data.get("inviter", ""),
            email=data.get("email", ""),
            first_name=data.get("firstName", ""),
            last_name=data.get("lastName", ""),
            uid=data.get("uid"),
            invite_id=invite_id,
            etag=etag,
        )

    def to_dict(self) -> dict[str, Any]:
        data = {
            "token": self.token,
            "inviter": self.inviter,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
        }
        if self.uid:
            data["uid"] = self.uid
        return data

    def consumed(self) -> "InviteRecord":
        return replace(self, state=InviteState.CONSUMED, etag=None)


@dataclass
class IssuedInvite:
    """Result of issuing an invitation."""
    invite_id: str
    account: Account
    link: Optional[str] = None
    email_sent: bool = False
