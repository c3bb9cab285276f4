"""Builder for team request bodies."""

from __future__ import annotations

from typing import Any

from ..apis.team import TeamParameters


def create_team_request(params: TeamParameters) -> dict[str, Any]:
    """Build the /team/new body from the desired parameters."""
    return params.to_dict()


def update_team_request(params: TeamParameters, team_id: str) -> dict[str, Any]:
    """Build the /team/update body for an existing team."""
    body = params.to_dict()
    body["team_id"] = team_id
    return body
