"""Team managed resource: a LiteLLM team."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from ..constants import KIND_TEAM, PLURAL_TEAMS
from .managed import Managed, drop_unset


@dataclass
class TeamParameters:
    """Desired state of a team (``spec.forProvider``)."""

    team_alias: str | None = None
    team_id: str | None = None
    models: list[str] = field(default_factory=list)
    max_budget: float | None = None
    budget_duration: str | None = None
    tpm_limit: int | None = None
    rpm_limit: int | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    blocked: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TeamParameters":
        return cls(
            team_alias=data.get("team_alias"),
            team_id=data.get("team_id"),
            models=list(data.get("models") or []),
            max_budget=data.get("max_budget"),
            budget_duration=data.get("budget_duration"),
            tpm_limit=data.get("tpm_limit"),
            rpm_limit=data.get("rpm_limit"),
            metadata=dict(data.get("metadata") or {}),
            blocked=data.get("blocked"),
        )

    def to_dict(self) -> dict[str, Any]:
        return drop_unset(asdict(self))


@dataclass
class TeamObservation:
    """Observed state of a team (``status.atProvider``)."""

    team_id: str | None = None
    team_alias: str | None = None
    spend: float | None = None
    status: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TeamObservation":
        return cls(
            team_id=data.get("team_id"),
            team_alias=data.get("team_alias"),
            spend=data.get("spend"),
            status=data.get("status"),
        )

    def to_dict(self) -> dict[str, Any]:
        return drop_unset(asdict(self))


class Team(Managed):
    """A LiteLLM team."""

    kind = KIND_TEAM
    plural = PLURAL_TEAMS

    @property
    def parameters(self) -> TeamParameters:
        return TeamParameters.from_dict(self.for_provider)

    @property
    def observation(self) -> TeamObservation:
        return TeamObservation.from_dict(self.at_provider)

    @property
    def external_team_id(self) -> str | None:
        return self.observation.team_id or self.parameters.team_id
