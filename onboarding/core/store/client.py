"""REST client for the realtime key-value tree holding profiles and invites.

Every node is addressed as ``{base_url}/{path}.json``. Reads can request the
node's ETag, and deletes can be made conditional on it, which is what makes
invite consumption a single read-check-delete.
"""
from __future__ import annotations
from typing import Any, Optional, Tuple

import requests

from .exceptions import StoreAPIError, StoreConflictError, StoreUnavailableError

REQUEST_TIMEOUT = 5


class RealtimeDatabase:
    """Thin wrapper over the database REST API.

    Args:
        base_url: Database URL (e.g. https://my-app.firebaseio.com)
        auth: Database secret or access token passed as the ``auth`` parameter
        namespace: Emulator namespace passed as the ``ns`` parameter
    """

    def __init__(self, base_url: str, auth: Optional[str] = None, namespace: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self._auth = auth
        self.namespace = namespace

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.strip('/')}.json"

    def _params(self) -> dict:
        params = {}
        if self._auth:
            params["auth"] = self._auth
        if self.namespace:
            params["ns"] = self.namespace
        return params

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            resp = requests.request(
                method, self._url(path), params=self._params(), timeout=REQUEST_TIMEOUT, **kwargs
            )
        except requests.RequestException as e:
            raise StoreUnavailableError(f"{method} {path} failed: {e}") from e

        if resp.status_code == 412:
            raise StoreConflictError(f"Node '{path}' changed since it was read")
        if resp.status_code >= 400:
            raise StoreAPIError(resp.status_code, resp.text, path)
        return resp

    def get(self, path: str) -> Any:
        """Return the node value, or ``None`` when the node does not exist."""
        return self._send("GET", path).json()

    def get_with_etag(self, path: str) -> Tuple[Any, Optional[str]]:
        resp = self._send("GET", path, headers={"X-Firebase-ETag": "true"})
        return resp.json(), resp.headers.get("ETag")

    def set(self, path: str, value: Any) -> None:
        self._send("PUT", path, json=value)

    def update(self, path: str, values: dict) -> None:
        self._send("PATCH", path, json=values)

    def push(self, path: str, value: Any) -> str:
        """Append a child with a generated key and return the key."""
        return self._send("POST", path, json=value).json()["name"]

    def remove(self, path: str, if_match: Optional[str] = None) -> None:
        """Delete a node; with ``if_match`` only when its ETag is unchanged.

        Raises:
            StoreConflictError: If ``if_match`` no longer matches the node
        """
        headers = {"if-match": if_match} if if_match else {}
        self._send("DELETE", path, headers=headers)
