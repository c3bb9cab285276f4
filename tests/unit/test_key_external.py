"""Tests for the Key external client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from litellm_operator.apis import Key, Team
from litellm_operator.errors import DecodeError, ExternalAPIError, ExternalNotFound, NotManagedRecord, ReconcileError
from litellm_operator.handlers.key import KeyExternal


def make_key(for_provider=None, at_provider=None) -> Key:
    body = {"metadata": {"name": "k1", "uid": "uid-1"}, "spec": {"forProvider": for_provider or {}}}
    if at_provider:
        body["status"] = {"atProvider": at_provider}
    return Key(body)


class TestObserve:
    """Test cases for KeyExternal.observe."""

    def test_unknown_key_does_not_exist(self):
        """A key never created and not requested explicitly does not exist."""
        service = MagicMock()

        observation = KeyExternal(service).observe(make_key({"key_alias": "a"}))

        assert not observation.exists
        service.key_info.assert_not_called()

    def test_not_found(self):
        service = MagicMock()
        service.key_info.side_effect = ExternalNotFound("key_info: not found")

        observation = KeyExternal(service).observe(make_key(at_provider={"key": "sk-1"}))

        assert not observation.exists

    def test_up_to_date(self):
        service = MagicMock()
        service.key_info.return_value = {
            "key": "sk-1",
            "info": {"key_alias": "a", "models": ["gpt-4o", "claude"], "max_budget": 10.0, "expires": None},
        }
        record = make_key(
            {"key_alias": "a", "models": ["claude", "gpt-4o"], "max_budget": 10, "duration": "30d"},
            {"key": "sk-1"},
        )

        observation = KeyExternal(service).observe(record)

        assert observation.exists
        assert observation.up_to_date
        assert observation.at_provider == {"key": "sk-1", "status": "generated"}
        assert observation.connection_details == {"key": b"sk-1"}

    def test_drift(self):
        service = MagicMock()
        service.key_info.return_value = {"info": {"key_alias": "old", "blocked": True}}

        observation = KeyExternal(service).observe(make_key({"key_alias": "new"}, {"key": "sk-1"}))

        assert observation.exists
        assert not observation.up_to_date
        assert observation.at_provider["status"] == "blocked"

    def test_missing_info(self):
        service = MagicMock()
        service.key_info.return_value = {"key": "sk-1"}

        with pytest.raises(DecodeError):
            KeyExternal(service).observe(make_key(at_provider={"key": "sk-1"}))

    def test_wrong_kind(self):
        with pytest.raises(NotManagedRecord):
            KeyExternal(MagicMock()).observe(Team({"metadata": {"name": "t1"}}))


class TestCreateUpdateDelete:
    """Test cases for mutations."""

    def test_create(self):
        service = MagicMock()
        service.generate_key.return_value = {"key": "sk-new", "expires": "2025-01-01T00:00:00Z"}

        creation = KeyExternal(service).create(make_key({"key_alias": "a", "duration": "30d"}))

        service.generate_key.assert_called_once_with({"key_alias": "a", "duration": "30d"})
        assert creation.at_provider == {"key": "sk-new", "expires": "2025-01-01T00:00:00Z", "status": "generated"}
        assert creation.connection_details == {"key": b"sk-new"}

    def test_create_without_key_in_response(self):
        service = MagicMock()
        service.generate_key.return_value = {}

        with pytest.raises(DecodeError):
            KeyExternal(service).create(make_key())

    def test_create_not_found_is_classified(self):
        """A missing team or user on create is a retryable API error, not an absent key."""
        service = MagicMock()
        service.generate_key.side_effect = ExternalNotFound("generate_key: Team not found", 400)

        with pytest.raises(ExternalAPIError) as exc_info:
            KeyExternal(service).create(make_key({"key_alias": "a", "team_id": "missing"}))

        assert isinstance(exc_info.value, ReconcileError)
        assert exc_info.value.status_code == 400
        assert "Team not found" in str(exc_info.value)

    def test_update_not_found_is_classified(self):
        service = MagicMock()
        service.update_key.side_effect = ExternalNotFound("update_key: Key not found")

        with pytest.raises(ExternalAPIError) as exc_info:
            KeyExternal(service).update(make_key({"key_alias": "b"}, {"key": "sk-1"}))

        assert exc_info.value.status_code == 404

    def test_update(self):
        service = MagicMock()

        update = KeyExternal(service).update(make_key({"key_alias": "b", "duration": "30d"}, {"key": "sk-1"}))

        service.update_key.assert_called_once_with({"key_alias": "b", "key": "sk-1"})
        assert update.connection_details == {"key": b"sk-1"}

    def test_update_without_key(self):
        with pytest.raises(DecodeError):
            KeyExternal(MagicMock()).update(make_key({"key_alias": "b"}))

    def test_delete(self):
        service = MagicMock()
        KeyExternal(service).delete(make_key(at_provider={"key": "sk-1"}))
        service.delete_keys.assert_called_once_with(["sk-1"])

    def test_delete_already_absent(self):
        service = MagicMock()
        service.delete_keys.side_effect = ExternalNotFound("gone")

        KeyExternal(service).delete(make_key(at_provider={"key": "sk-1"}))

    def test_delete_unknown_key(self):
        service = MagicMock()
        KeyExternal(service).delete(make_key())
        service.delete_keys.assert_not_called()
