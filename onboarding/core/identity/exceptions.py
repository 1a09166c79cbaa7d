"""Identity provider exceptions for error handling."""


class IdentityError(Exception):
    """Base exception for all identity provider operations."""
    pass


class IdentityAPIError(IdentityError):
    """HTTP error from the Keycloak Admin API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class AccountNotFoundError(IdentityError):
    """Account required by an update does not exist."""
    pass


class InvalidTokenError(IdentityError):
    """Bearer token failed verification (signature, expiry, issuer, format)."""
    pass


class IdentityUnavailableError(IdentityError):
    """Keycloak could not be reached (connection error, timeout)."""
    pass
