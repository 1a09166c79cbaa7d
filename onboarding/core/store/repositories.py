"""Profile and invite records on top of the realtime database."""
from __future__ import annotations
import logging
from typing import Any, Optional

from ..models import InviteRecord, InviteState
from .client import RealtimeDatabase

logger = logging.getLogger(__name__)


class ProfileRepository:
    """Denormalized profile records keyed by account id."""

    def __init__(self, db: RealtimeDatabase, base_path: str = "users"):
        self.db = db
        self.base_path = base_path.strip("/")

    def path_for(self, uid: str) -> str:
        return f"{self.base_path}/{uid}"

    def get(self, uid: str) -> Optional[dict[str, Any]]:
        return self.db.get(self.path_for(uid))

    def write(self, uid: str, profile: dict[str, Any]) -> None:
        """Overwrite the whole profile record."""
        self.db.set(self.path_for(uid), profile)

    def update(self, uid: str, values: dict[str, Any]) -> None:
        self.db.update(self.path_for(uid), values)

    def remove(self, uid: str) -> None:
        self.db.remove(self.path_for(uid))


class InviteRepository:
    """Pending invitations keyed by a store-generated id."""

    def __init__(self, db: RealtimeDatabase, base_path: str = "invites"):
        self.db = db
        self.base_path = base_path.strip("/")

    def path_for(self, invite_id: str) -> str:
        return f"{self.base_path}/{invite_id}"

    def create(self, record: InviteRecord) -> str:
        invite_id = self.db.push(self.base_path, record.to_dict())
        record.invite_id = invite_id
        return invite_id

    def get(self, invite_id: str) -> Optional[InviteRecord]:
        """Return the issued invite with the ETag it was read at, or ``None``."""
        data, etag = self.db.get_with_etag(self.path_for(invite_id))
        if not data:
            return None
        return InviteRecord.from_dict(invite_id, data, etag=etag)

    def consume(self, record: InviteRecord) -> InviteRecord:
        """Delete the invite only if it is unchanged since it was read.

        Raises:
            StoreConflictError: If another request changed or consumed it first
            ValueError: If the record is not in the issued state
        """
        if record.state is not InviteState.ISSUED or not record.invite_id:
            raise ValueError("Only an issued, stored invite can be consumed")
        self.db.remove(self.path_for(record.invite_id), if_match=record.etag)
        logger.info(f"Invite {record.invite_id} consumed")
        return record.consumed()

    def restore(self, record: InviteRecord) -> None:
        """Put a consumed invite back after a failed acceptance."""
        if not record.invite_id:
            raise ValueError("Cannot restore an invite without an id")
        self.db.set(self.path_for(record.invite_id), record.to_dict())
        logger.warning(f"Invite {record.invite_id} restored after failed acceptance")
