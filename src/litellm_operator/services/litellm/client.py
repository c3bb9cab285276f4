"""LiteLLM proxy management API client."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import requests

from ... import metrics
from ...errors import (
    CredentialRejected,
    DecodeError,
    ExternalAPIError,
    ExternalNotFound,
    TransientTransportError,
)
from ...utils.errors import sanitize_error_message
from ...utils.rate_limit import rate_limit_litellm

logger = logging.getLogger(__name__)


class LiteLLMClient:
    """Authenticated JSON client for the LiteLLM proxy key and team endpoints."""

    def __init__(
        self,
        api_base: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize LiteLLM client.

        Args:
            api_base: Base URL of the LiteLLM proxy (e.g. http://litellm:4000)
            api_key: Bearer token (master key); omitted for unauthenticated proxies
            timeout: Per-request timeout in seconds
            session: Optional session to reuse
        """
        if not api_base:
            raise ValueError("apiBase is required")
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def _request(
        self,
        method: str,
        endpoint: str,
        operation: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Send a request and decode the JSON response.

        Raises:
            TransientTransportError: On connection errors, timeouts, 429 and 5xx
            CredentialRejected: On 401 and 403
            ExternalNotFound: On 404 or a "not found" error body
            ExternalAPIError: On any other non-2xx status
            DecodeError: If the response body is not a JSON object
        """
        url = f"{self.api_base}{endpoint}"
        start_time = time.time()
        try:
            response = rate_limit_litellm(self.session.request)(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            metrics.api_call_total.labels(api_type="litellm", operation=operation, result="error").inc()
            raise TransientTransportError(f"{operation} request failed", e) from e
        finally:
            metrics.api_call_duration_seconds.labels(api_type="litellm", operation=operation).observe(
                time.time() - start_time
            )

        status = response.status_code
        if status >= 400:
            metrics.api_call_total.labels(api_type="litellm", operation=operation, result=str(status)).inc()
            detail = sanitize_error_message(response.text[:500])
            if status in (401, 403):
                raise CredentialRejected(f"{operation} rejected credentials (HTTP {status}): {detail}")
            if status == 404 or (status == 400 and "not found" in detail.lower()):
                raise ExternalNotFound(f"{operation}: {detail}", status)
            if status == 429 or status >= 500:
                raise TransientTransportError(f"{operation} failed (HTTP {status}): {detail}")
            raise ExternalAPIError(f"{operation} failed (HTTP {status}): {detail}", status)

        metrics.api_call_total.labels(api_type="litellm", operation=operation, result="success").inc()
        try:
            body = response.json()
        except (ValueError, json.JSONDecodeError) as e:
            raise DecodeError(f"cannot decode {operation} response", e) from e
        if not isinstance(body, dict):
            raise DecodeError(f"cannot decode {operation} response: expected a JSON object")
        return body

    # Keys

    def generate_key(self, body: dict[str, Any]) -> dict[str, Any]:
        """Create a virtual key. Returns ``{key, expires, user_id, ...}``."""
        return self._request("POST", "/key/generate", "generate_key", json=body)

    def key_info(self, key: str) -> dict[str, Any]:
        """Get a virtual key. Returns ``{key, info: {...}}``."""
        return self._request("GET", "/key/info", "key_info", params={"key": key})

    def update_key(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/key/update", "update_key", json=body)

    def delete_keys(self, keys: list[str]) -> dict[str, Any]:
        return self._request("POST", "/key/delete", "delete_keys", json={"keys": keys})

    # Teams

    def new_team(self, body: dict[str, Any]) -> dict[str, Any]:
        """Create a team. Returns the team object including ``team_id``."""
        return self._request("POST", "/team/new", "new_team", json=body)

    def team_info(self, team_id: str) -> dict[str, Any]:
        """Get a team. Returns ``{team_id, team_info: {...}}``."""
        return self._request("GET", "/team/info", "team_info", params={"team_id": team_id})

    def update_team(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/team/update", "update_team", json=body)

    def delete_teams(self, team_ids: list[str]) -> dict[str, Any]:
        return self._request("POST", "/team/delete", "delete_teams", json={"team_ids": team_ids})
