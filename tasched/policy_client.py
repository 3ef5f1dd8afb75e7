"""HTTP client for the telemetry policy custom resource."""

from __future__ import annotations

from typing import Any

import requests

from tasched.policy import GROUP, PLURAL, VERSION, TASPolicy, TASPolicyList

_TIMEOUT = 30


class PolicyClientError(Exception):
    """Raised when the API server rejects or fails a policy request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PolicyClient:
    """Namespaced client for creating, reading and removing telemetry policies."""

    def __init__(
        self,
        server: str,
        namespace: str = "default",
        session: requests.Session | None = None,
    ) -> None:
        self.server = server.rstrip("/")
        self.namespace = namespace
        self.plural = PLURAL
        self._session = session if session is not None else requests.Session()

    def _collection_url(self, namespace: str) -> str:
        base = f"{self.server}/apis/{GROUP}/{VERSION}"
        if namespace:
            return f"{base}/namespaces/{namespace}/{self.plural}"
        return f"{base}/{self.plural}"

    def _object_url(self, namespace: str, name: str) -> str:
        if not name:
            raise PolicyClientError("resource name may not be empty")
        return f"{self._collection_url(namespace)}/{name}"

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._session.request(
                method,
                url,
                headers={"Accept": "application/json"},
                timeout=_TIMEOUT,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise PolicyClientError(str(exc)) from exc
        if not response.ok:
            message = response.text
            try:
                message = response.json().get("message", message)
            except ValueError:
                pass
            raise PolicyClientError(
                f"{method} {url} failed ({response.status_code}): {message}",
                response.status_code,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise PolicyClientError(f"invalid JSON in response: {exc}") from exc

    def create(self, policy: TASPolicy) -> TASPolicy:
        """Register a new policy and return the stored object."""
        data = self._request(
            "POST", self._collection_url(policy.namespace), json=policy.to_dict()
        )
        return TASPolicy.from_dict(data)

    def update(self, policy: TASPolicy) -> TASPolicy:
        """Replace an existing policy and return the stored object."""
        data = self._request(
            "PUT", self._object_url(policy.namespace, policy.name), json=policy.to_dict()
        )
        return TASPolicy.from_dict(data)

    def get(self, name: str, namespace: str) -> TASPolicy:
        """Return the named policy from the given namespace."""
        return TASPolicy.from_dict(self._request("GET", self._object_url(namespace, name)))

    def delete(self, name: str, options: dict[str, Any] | None = None) -> None:
        """Remove the named policy from the client's namespace."""
        kwargs: dict[str, Any] = {}
        if options is not None:
            kwargs["json"] = options
        self._request("DELETE", self._object_url(self.namespace, name), **kwargs)

    def list(self, label_selector: str | None = None) -> TASPolicyList:
        """Return the policies in the client's namespace, optionally filtered by labels."""
        params = {"labelSelector": label_selector} if label_selector else None
        data = self._request("GET", self._collection_url(self.namespace), params=params)
        return TASPolicyList.from_dict(data)