"""Builders for LiteLLM clients and request bodies."""

from .key import create_key_request, update_key_request
from .provider import create_client_from_provider_config, parse_api_key
from .team import create_team_request, update_team_request

__all__ = [
    "create_client_from_provider_config",
    "parse_api_key",
    "create_key_request",
    "update_key_request",
    "create_team_request",
    "update_team_request",
]
