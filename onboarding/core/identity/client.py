"""Low-level HTTP client for the Keycloak Admin API.

Authenticates with a service-account client (client credentials grant) and
refreshes the access token shortly before it expires.
"""
from __future__ import annotations
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

import requests

from .exceptions import IdentityAPIError, IdentityUnavailableError

REQUEST_TIMEOUT = 5
TOKEN_REFRESH_LEEWAY = 10


class KeycloakClient:
    """HTTP client for the Keycloak Admin API with automatic token management.

    Usage:
        client = KeycloakClient("http://keycloak:8080", "demo", "onboarding-service", "secret")
        response = client.get("/admin/realms/demo/users", params={"email": "papa@example.com"})
    """

    def __init__(self, base_url: str, auth_realm: str, client_id: str, client_secret: str):
        self.base_url = base_url.rstrip("/")
        self.auth_realm = auth_realm
        self.client_id = client_id
        self._client_secret = client_secret
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/realms/{self.auth_realm}/protocol/openid-connect/token"

    def _ensure_authenticated(self) -> str:
        """Return a valid service token, fetching a new one when expired or expiring."""
        if (
            self._token
            and self._token_expires_at
            and datetime.now() < self._token_expires_at - timedelta(seconds=TOKEN_REFRESH_LEEWAY)
        ):
            return self._token

        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self._client_secret,
        }
        try:
            resp = requests.post(self.token_url, data=data, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise IdentityUnavailableError(f"Token endpoint unreachable: {e}") from e
        if resp.status_code != 200:
            raise IdentityAPIError(resp.status_code, resp.text, self.token_url)

        payload = resp.json()
        self._token = payload["access_token"]
        self._token_expires_at = datetime.now() + timedelta(seconds=int(payload.get("expires_in", 60)))
        return self._token

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        allow_status: Iterable[int] = (),
    ) -> requests.Response:
        """Execute an authenticated request against the admin API.

        Args:
            method: HTTP method
            path: API endpoint path (e.g., "/admin/realms/demo/users")
            params: Query parameters
            json: JSON payload
            allow_status: Error statuses returned to the caller instead of raised

        Raises:
            IdentityAPIError: On HTTP error not listed in ``allow_status``
        """
        token = self._ensure_authenticated()
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}

        try:
            resp = requests.request(
                method, url, params=params, json=json, headers=headers, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as e:
            raise IdentityUnavailableError(f"{method} {path} failed: {e}") from e
        if resp.status_code in set(allow_status):
            return resp
        self._handle_error(resp)
        return resp

    def get(self, path: str, params: Optional[dict] = None, **kwargs) -> requests.Response:
        return self.request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Any = None, **kwargs) -> requests.Response:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Any = None, **kwargs) -> requests.Response:
        return self.request("PUT", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        return self.request("DELETE", path, **kwargs)

    def _handle_error(self, resp: requests.Response) -> None:
        if resp.status_code >= 400:
            raise IdentityAPIError(resp.status_code, resp.text, resp.url)
