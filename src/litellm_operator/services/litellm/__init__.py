"""LiteLLM proxy management API client."""

from .client import LiteLLMClient

__all__ = ["LiteLLMClient"]
