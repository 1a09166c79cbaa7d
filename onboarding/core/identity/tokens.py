"""Access token verification against the realm's JWKS.

Security:
- RSA-SHA256 signature verification via JWKS (RFC 7517)
- Expiration, not-before and issuer validation (RFC 7519)
- JWKS caching (1-hour refresh)
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidIssuerError,
    InvalidSignatureError,
    PyJWKClientConnectionError,
    PyJWKClientError,
    PyJWTError,
)

from .exceptions import IdentityUnavailableError, InvalidTokenError

logger = logging.getLogger(__name__)


class TokenVerifier:
    """Verify bearer tokens issued by the identity provider.

    The JWKS client is created lazily so that building the service does not
    touch the network.
    """

    def __init__(self, server_url: str, issuer: str, leeway: int = 5):
        self.jwks_url = f"{server_url.rstrip('/')}/protocol/openid-connect/certs"
        self.issuer = issuer
        self.leeway = leeway
        self._jwks_client: Optional[PyJWKClient] = None

    def get_jwks_client(self) -> PyJWKClient:
        if self._jwks_client is None:
            logger.info(f"Initializing JWKS client for: {self.jwks_url}")
            self._jwks_client = PyJWKClient(
                self.jwks_url,
                cache_keys=True,
                max_cached_keys=16,
                lifespan=3600,
                headers={"User-Agent": "Onboarding-Service/1.0"},
            )
        return self._jwks_client

    def verify(self, token: str) -> Dict[str, Any]:
        """Validate a JWT and return its claims.

        Raises:
            InvalidTokenError: If any validation fails
            IdentityUnavailableError: If the JWKS endpoint cannot be reached
        """
        if not token:
            raise InvalidTokenError("Token is empty")

        try:
            signing_key = self.get_jwks_client().get_signing_key_from_jwt(token)
            return jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self.issuer,
                options={
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_nbf": True,
                    "verify_iss": True,
                    "verify_aud": False,
                    "require": ["exp", "iat"],
                },
                leeway=self.leeway,
            )
        except PyJWKClientConnectionError as e:
            raise IdentityUnavailableError(f"JWKS endpoint unreachable: {e}")
        except ExpiredSignatureError:
            raise InvalidTokenError("Token expired (exp claim)")
        except InvalidIssuerError as e:
            raise InvalidTokenError(f"Invalid issuer: {e}")
        except InvalidSignatureError:
            raise InvalidTokenError("Invalid signature (token tampered or wrong key)")
        except DecodeError as e:
            raise InvalidTokenError(f"Token decode error (malformed JWT): {e}")
        except (PyJWKClientError, PyJWTError) as e:
            raise InvalidTokenError(f"Token validation failed: {e}")
