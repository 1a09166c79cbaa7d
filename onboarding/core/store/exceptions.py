"""Profile store exceptions."""


class StoreError(Exception):
    """Base exception for all profile store operations."""
    pass


class StoreAPIError(StoreError):
    """HTTP error from the realtime database REST API."""

    def __init__(self, status_code: int, message: str, path: str):
        self.status_code = status_code
        self.message = message
        self.path = path
        super().__init__(f"[{status_code}] {path}: {message}")


class StoreConflictError(StoreError):
    """Conditional write rejected because the node changed (ETag mismatch)."""
    pass


class StoreUnavailableError(StoreError):
    """Database could not be reached (connection error, timeout)."""
    pass
