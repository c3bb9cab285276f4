"""API types for the litellm.cloud37.dev group."""

from .key import Key, KeyObservation, KeyParameters
from .managed import Managed
from .provider_config import ProviderConfig, ProviderConfigUsage
from .registry import KindRegistry
from .team import Team, TeamObservation, TeamParameters


def register_kinds(registry: KindRegistry) -> None:
    """Register every managed kind served by this operator."""
    registry.register(Key)
    registry.register(Team)


__all__ = [
    "Managed",
    "Key",
    "KeyParameters",
    "KeyObservation",
    "Team",
    "TeamParameters",
    "TeamObservation",
    "ProviderConfig",
    "ProviderConfigUsage",
    "KindRegistry",
    "register_kinds",
]
