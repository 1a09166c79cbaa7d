"""Identity provider (Keycloak) access for the onboarding flows.

Architecture:
- client.py: HTTP client with service-account authentication and auto-refresh
- tokens.py: bearer token verification via the realm JWKS
- gateway.py: account look-ups, creation, claims, updates, deletion, listing
- exceptions.py: typed exceptions for error handling

Usage:
    from onboarding.core.identity import build_identity_gateway

    gateway = build_identity_gateway(cfg)
    account = gateway.get_account_by_email("papa@example.com")
"""
from .client import KeycloakClient, REQUEST_TIMEOUT
from .exceptions import (
    IdentityError,
    IdentityAPIError,
    AccountNotFoundError,
    InvalidTokenError,
    IdentityUnavailableError,
)
from .gateway import IdentityGateway, decode_claims, encode_claims
from .tokens import TokenVerifier


def build_identity_gateway(cfg) -> IdentityGateway:
    """Create a gateway from application settings."""
    client = KeycloakClient(
        cfg.keycloak_url,
        cfg.keycloak_service_realm,
        cfg.keycloak_service_client_id,
        cfg.keycloak_service_client_secret,
    )
    verifier = TokenVerifier(cfg.keycloak_server_url, cfg.keycloak_issuer)
    return IdentityGateway(client, cfg.keycloak_realm, verifier)


__all__ = [
    "KeycloakClient",
    "REQUEST_TIMEOUT",
    "IdentityError",
    "IdentityAPIError",
    "AccountNotFoundError",
    "InvalidTokenError",
    "IdentityUnavailableError",
    "IdentityGateway",
    "TokenVerifier",
    "build_identity_gateway",
    "decode_claims",
    "encode_claims",
]
