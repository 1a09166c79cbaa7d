"""Profile store (realtime key-value tree) access."""
from .client import RealtimeDatabase, REQUEST_TIMEOUT
from .exceptions import StoreError, StoreAPIError, StoreConflictError, StoreUnavailableError
from .repositories import ProfileRepository, InviteRepository


def build_repositories(cfg) -> tuple[ProfileRepository, InviteRepository]:
    """Create profile and invite repositories sharing one database client."""
    db = RealtimeDatabase(
        cfg.profile_store_url,
        auth=cfg.profile_store_auth or None,
        namespace=cfg.profile_store_namespace or None,
    )
    return ProfileRepository(db, cfg.profiles_path), InviteRepository(db, cfg.invites_path)


__all__ = [
    "RealtimeDatabase",
    "REQUEST_TIMEOUT",
    "StoreError",
    "StoreAPIError",
    "StoreConflictError",
    "StoreUnavailableError",
    "ProfileRepository",
    "InviteRepository",
    "build_repositories",
]
