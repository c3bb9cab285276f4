"""Tests for the LiteLLM proxy client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from litellm_operator.errors import (
    CredentialRejected,
    DecodeError,
    ExternalAPIError,
    ExternalNotFound,
    TransientTransportError,
)
from litellm_operator.services.litellm.client import LiteLLMClient


def make_response(status: int, body=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.text = text
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


def make_client(response=None, error=None):
    session = MagicMock()
    session.headers = {}
    if error is not None:
        session.request.side_effect = error
    else:
        session.request.return_value = response
    return LiteLLMClient("http://litellm:4000/", api_key="sk-master", timeout=5, session=session), session


class TestLiteLLMClient:
    """Test cases for request building."""

    def test_bearer_header(self):
        _, session = make_client(make_response(200, {}))
        assert session.headers["Authorization"] == "Bearer sk-master"

    def test_no_auth_header_without_key(self):
        session = MagicMock()
        session.headers = {}
        LiteLLMClient("http://litellm:4000", session=session)
        assert "Authorization" not in session.headers

    def test_missing_api_base(self):
        with pytest.raises(ValueError):
            LiteLLMClient("")

    def test_generate_key(self):
        client, session = make_client(make_response(200, {"key": "sk-1"}))

        assert client.generate_key({"key_alias": "a"}) == {"key": "sk-1"}
        session.request.assert_called_once_with(
            "POST", "http://litellm:4000/key/generate", timeout=5, json={"key_alias": "a"}
        )

    def test_key_info(self):
        client, session = make_client(make_response(200, {"key": "sk-1", "info": {}}))

        client.key_info("sk-1")

        args, kwargs = session.request.call_args
        assert args == ("GET", "http://litellm:4000/key/info")
        assert kwargs["params"] == {"key": "sk-1"}

    def test_delete_teams(self):
        client, session = make_client(make_response(200, {"deleted_teams": ["team-a"]}))

        client.delete_teams(["team-a"])

        assert session.request.call_args[1]["json"] == {"team_ids": ["team-a"]}


class TestErrorMapping:
    """Test cases for HTTP status classification."""

    def test_connection_error_is_transient(self):
        client, _ = make_client(error=requests.exceptions.ConnectionError("refused"))

        with pytest.raises(TransientTransportError):
            client.team_info("team-a")

    def test_timeout_is_transient(self):
        client, _ = make_client(error=requests.exceptions.Timeout("slow"))

        with pytest.raises(TransientTransportError):
            client.team_info("team-a")

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failure(self, status):
        client, _ = make_client(make_response(status, text="invalid api key"))

        with pytest.raises(CredentialRejected):
            client.key_info("sk-1")

    def test_not_found(self):
        client, _ = make_client(make_response(404, text="Key not found"))

        with pytest.raises(ExternalNotFound):
            client.key_info("sk-1")

    def test_bad_request_not_found_body(self):
        """LiteLLM reports some missing objects as 400 with a not-found message."""
        client, _ = make_client(make_response(400, text='{"error": "Team not found, passed team_id=team-a"}'))

        with pytest.raises(ExternalNotFound):
            client.team_info("team-a")

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_server_errors_are_transient(self, status):
        client, _ = make_client(make_response(status, text="busy"))

        with pytest.raises(TransientTransportError):
            client.update_team({"team_id": "team-a"})

    def test_other_client_errors(self):
        client, _ = make_client(make_response(422, text="max_budget must be a number"))

        with pytest.raises(ExternalAPIError) as exc_info:
            client.update_team({"team_id": "team-a"})
        assert exc_info.value.status_code == 422

    def test_error_detail_is_sanitized(self):
        client, _ = make_client(make_response(422, text="bad key sk-abcdef123456"))

        with pytest.raises(ExternalAPIError) as exc_info:
            client.update_key({"key": "sk-abcdef123456"})
        assert "sk-abcdef123456" not in str(exc_info.value)

    def test_invalid_json(self):
        client, _ = make_client(make_response(200, ValueError("no json")))

        with pytest.raises(DecodeError):
            client.generate_key({})

    def test_non_object_json(self):
        client, _ = make_client(make_response(200, ["sk-1"]))

        with pytest.raises(DecodeError):
            client.generate_key({})
