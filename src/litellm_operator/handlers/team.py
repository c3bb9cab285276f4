"""External client for Team resources."""

from __future__ import annotations

import logging
from typing import Any

from ..apis.managed import Managed
from ..apis.team import Team, TeamObservation
from ..builders.team import create_team_request, update_team_request
from ..constants import KIND_TEAM
from ..errors import DecodeError, ExternalAPIError, ExternalNotFound, NotManagedRecord
from ..managed.interfaces import ExternalCreation, ExternalObservation, ExternalUpdate
from ..services.litellm.client import LiteLLMClient
from .diff import changed_fields

logger = logging.getLogger(__name__)

TEAM_STATUS_ACTIVE = "active"
TEAM_STATUS_BLOCKED = "blocked"


def _as_team(record: Managed) -> Team:
    if not isinstance(record, Team):
        raise NotManagedRecord(KIND_TEAM, type(record).__name__)
    return record


class TeamExternal:
    """Observes, creates, updates and deletes LiteLLM teams."""

    def __init__(self, service: LiteLLMClient) -> None:
        self.service = service

    def observe(self, record: Managed) -> ExternalObservation:
        cr = _as_team(record)
        team_id = cr.external_team_id
        if not team_id:
            return ExternalObservation(exists=False)

        try:
            resp = self.service.team_info(team_id)
        except ExternalNotFound:
            return ExternalObservation(exists=False)

        info: dict[str, Any] = resp.get("team_info") or resp
        observation = TeamObservation(
            team_id=team_id,
            team_alias=info.get("team_alias"),
            spend=info.get("spend"),
            status=TEAM_STATUS_BLOCKED if info.get("blocked") else TEAM_STATUS_ACTIVE,
        )
        diff = changed_fields(cr.parameters.to_dict(), info, ignore=("team_id",))
        if diff:
            logger.debug(f"Team {cr.name} differs from desired state in {diff}")

        return ExternalObservation(exists=True, up_to_date=not diff, at_provider=observation.to_dict())

    def create(self, record: Managed) -> ExternalCreation:
        cr = _as_team(record)
        try:
            resp = self.service.new_team(create_team_request(cr.parameters))
        except ExternalNotFound as e:
            raise ExternalAPIError("cannot create team", e.status_code, e) from e

        team_id = resp.get("team_id")
        if not team_id:
            raise DecodeError("cannot decode new_team response: missing team_id")

        observation = TeamObservation(
            team_id=team_id,
            team_alias=resp.get("team_alias"),
            spend=resp.get("spend"),
            status=TEAM_STATUS_BLOCKED if resp.get("blocked") else TEAM_STATUS_ACTIVE,
        )
        return ExternalCreation(at_provider=observation.to_dict())

    def update(self, record: Managed) -> ExternalUpdate:
        cr = _as_team(record)
        team_id = cr.external_team_id
        if not team_id:
            raise DecodeError("cannot update team: no team_id is known for this resource")

        try:
            self.service.update_team(update_team_request(cr.parameters, team_id))
        except ExternalNotFound as e:
            raise ExternalAPIError("cannot update team", e.status_code, e) from e
        return ExternalUpdate()

    def delete(self, record: Managed) -> None:
        cr = _as_team(record)
        team_id = cr.external_team_id
        if not team_id:
            return
        try:
            self.service.delete_teams([team_id])
        except ExternalNotFound:
            logger.debug(f"Team for {cr.name} is already absent")
