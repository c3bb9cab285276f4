"""Builder for LiteLLM client instances."""

from __future__ import annotations

import json
from typing import Any

import requests

from ..apis.provider_config import ProviderConfig
from ..services.litellm.client import LiteLLMClient


def parse_api_key(credentials: bytes) -> str | None:
    """Extract the bearer token from resolved credential bytes.

    The credentials are either a JSON object carrying ``api_key`` (or
    ``apiKey`` / ``master_key``) or the raw token itself.

    Raises:
        ValueError: If a JSON object carries none of the known keys
    """
    text = credentials.decode("utf-8").strip()
    if not text:
        return None
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError("credentials are not valid JSON") from e
        for field in ("api_key", "apiKey", "master_key"):
            if data.get(field):
                return str(data[field])
        raise ValueError("credentials JSON must contain api_key")
    return text


def create_client_from_provider_config(
    pc: ProviderConfig,
    credentials: bytes,
    timeout: float = 30.0,
) -> LiteLLMClient:
    """Create a LiteLLM client bound to a ProviderConfig.

    Args:
        pc: ProviderConfig carrying the API base address
        credentials: Resolved credential bytes
        timeout: Per-request timeout in seconds

    Returns:
        Configured LiteLLM client

    Raises:
        ValueError: If configuration is invalid
    """
    api_base = pc.api_base
    if not api_base:
        raise ValueError("apiBase is required")
    if not api_base.startswith(("http://", "https://")):
        raise ValueError(f"apiBase must be an http(s) URL, got {api_base}")

    session = requests.Session()
    tls_config: dict[str, Any] = pc.spec.get("tls", {})
    if tls_config.get("insecureSkipVerify", False):
        session.verify = False

    return LiteLLMClient(
        api_base=api_base,
        api_key=parse_api_key(credentials),
        timeout=timeout,
        session=session,
    )
