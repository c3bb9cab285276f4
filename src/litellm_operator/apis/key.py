"""Key managed resource: a LiteLLM virtual key."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from ..constants import KIND_KEY, PLURAL_KEYS
from .managed import Managed, drop_unset


@dataclass
class KeyParameters:
    """Desired state of a virtual key (``spec.forProvider``)."""

    duration: str | None = None
    key_alias: str | None = None
    key: str | None = None
    team_id: str | None = None
    user_id: str | None = None
    models: list[str] = field(default_factory=list)
    max_budget: float | None = None
    budget_duration: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyParameters":
        return cls(
            duration=data.get("duration"),
            key_alias=data.get("key_alias"),
            key=data.get("key"),
            team_id=data.get("team_id"),
            user_id=data.get("user_id"),
            models=list(data.get("models") or []),
            max_budget=data.get("max_budget"),
            budget_duration=data.get("budget_duration"),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the set fields only."""
        return drop_unset(asdict(self))


@dataclass
class KeyObservation:
    """Observed state of a virtual key (``status.atProvider``)."""

    key: str | None = None
    expires: str | None = None
    user_id: str | None = None
    status: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyObservation":
        return cls(
            key=data.get("key"),
            expires=data.get("expires"),
            user_id=data.get("user_id"),
            status=data.get("status"),
        )

    def to_dict(self) -> dict[str, Any]:
        return drop_unset(asdict(self))


class Key(Managed):
    """A LiteLLM virtual key."""

    kind = KIND_KEY
    plural = PLURAL_KEYS

    @property
    def parameters(self) -> KeyParameters:
        return KeyParameters.from_dict(self.for_provider)

    @property
    def observation(self) -> KeyObservation:
        return KeyObservation.from_dict(self.at_provider)

    @property
    def external_key(self) -> str | None:
        """The key that identifies the external resource, if known."""
        return self.observation.key or self.parameters.key
