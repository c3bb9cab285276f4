"""Tests for the managed resource reconciler.

The reconciler runs against in-memory fakes of the record store, the LiteLLM
proxy and the connection publisher, with the real connector and Key external
client in between.
"""

from __future__ import annotations

import copy
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from litellm_operator.apis import Key, ProviderConfig, Team
from litellm_operator.constants import (
    ANNOTATION_EXTERNAL_CREATE_FAILED,
    ANNOTATION_EXTERNAL_CREATE_PENDING,
    ANNOTATION_EXTERNAL_CREATE_SUCCEEDED,
    FINALIZER,
)
from litellm_operator.errors import (
    ConflictError,
    ExternalNotFound,
    ProviderConfigNotFound,
    TransientTransportError,
)
from litellm_operator.handlers.key import KeyExternal
from litellm_operator.managed.connector import Connector
from litellm_operator.managed.credentials import CredentialResolver
from litellm_operator.managed.reconciler import Deadline, Reconciler
from litellm_operator.utils.conditions import get_condition

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
MUTATIONS = {"generate_key", "update_key", "delete_keys"}


class FakeStore:
    """Record store with resourceVersion checks and finalizer-gated deletion."""

    def __init__(self) -> None:
        self.bodies: dict[str, dict] = {}
        self.configs: dict[str, ProviderConfig] = {}
        self.status_conflicts = 0
        self._rv = 0

    def _next_rv(self) -> str:
        self._rv += 1
        return str(self._rv)

    def put(self, body: dict) -> None:
        body = copy.deepcopy(body)
        body["metadata"]["resourceVersion"] = self._next_rv()
        self.bodies[body["metadata"]["name"]] = body

    def get(self, cls, name):
        body = self.bodies.get(name)
        return cls(body) if body is not None else None

    def _check(self, record) -> dict:
        current = self.bodies.get(record.name)
        if current is None or current["metadata"]["resourceVersion"] != record.resource_version:
            raise ConflictError(f"{record.kind} {record.name} was modified concurrently")
        return current

    def update(self, record):
        current = self._check(record)
        body = record.to_body()
        body["status"] = copy.deepcopy(current.get("status", {}))
        if body["metadata"].get("deletionTimestamp") and not body["metadata"].get("finalizers"):
            del self.bodies[record.name]
            return type(record)(body)
        body["metadata"]["resourceVersion"] = self._next_rv()
        self.bodies[record.name] = body
        return type(record)(body)

    def update_status(self, record):
        if self.status_conflicts:
            self.status_conflicts -= 1
            self.bodies[record.name]["metadata"]["resourceVersion"] = self._next_rv()
        current = self._check(record)
        body = copy.deepcopy(current)
        body["status"] = record.to_body()["status"]
        body["metadata"]["resourceVersion"] = self._next_rv()
        self.bodies[record.name] = body
        return type(record)(body)

    def get_provider_config(self, name):
        if name not in self.configs:
            raise ProviderConfigNotFound(name)
        return self.configs[name]


class FakeLiteLLM:
    """In-memory LiteLLM proxy key endpoints."""

    def __init__(self) -> None:
        self.keys: dict[str, dict] = {}
        self.calls: list[tuple[str, object]] = []
        self.fail: dict[str, Exception] = {}
        self.next_key = "sk-123"
        self.on_mutation = None

    def _call(self, op: str, arg) -> None:
        self.calls.append((op, copy.deepcopy(arg)))
        if op in MUTATIONS and self.on_mutation is not None:
            self.on_mutation()
        if op in self.fail:
            raise self.fail[op]

    def mutations(self) -> list[str]:
        return [op for op, _ in self.calls if op in MUTATIONS]

    def generate_key(self, body):
        self._call("generate_key", body)
        key = body.get("key") or self.next_key
        self.keys[key] = {k: v for k, v in body.items() if k not in ("duration", "key")}
        return {"key": key, "status": "generated"}

    def key_info(self, key):
        self._call("key_info", key)
        if key not in self.keys:
            raise ExternalNotFound("key_info: Key not found")
        return {"key": key, "info": dict(self.keys[key])}

    def update_key(self, body):
        self._call("update_key", body)
        if body["key"] not in self.keys:
            raise ExternalNotFound("update_key: Key not found")
        self.keys[body["key"]].update({k: v for k, v in body.items() if k != "key"})
        return {}

    def delete_keys(self, keys):
        self._call("delete_keys", keys)
        for key in keys:
            if key not in self.keys:
                raise ExternalNotFound("delete_keys: Key not found")
            del self.keys[key]
        return {"deleted_keys": keys}


class FakePublisher:
    def __init__(self) -> None:
        self.secrets: dict[str, dict[str, bytes]] = {}
        self.writes = 0

    def publish(self, record, details) -> bool:
        if not details:
            return False
        merged = {**self.secrets.get(record.name, {}), **details}
        if merged == self.secrets.get(record.name):
            return False
        self.secrets[record.name] = merged
        self.writes += 1
        return True

    def unpublish(self, record) -> None:
        self.secrets.pop(record.name, None)


PC1 = ProviderConfig(
    {
        "metadata": {"name": "pc1"},
        "spec": {"apiBase": "http://litellm:4000", "credentials": {"source": "Inline", "inline": "sk-master"}},
    }
)


def key_body(for_provider=None, **extra):
    body = {
        "apiVersion": "litellm.cloud37.dev/v1alpha1",
        "kind": "Key",
        "metadata": {"name": "k1", "uid": "uid-1", "generation": 1},
        "spec": {
            "providerConfigRef": {"name": "pc1"},
            "forProvider": for_provider or {"duration": "24h", "key_alias": "svc-a"},
        },
    }
    for section, values in extra.items():
        body.setdefault(section, {}).update(values)
    return body


class Harness:
    def __init__(self, kind=Key, connector_kind=Key) -> None:
        self.store = FakeStore()
        self.service = FakeLiteLLM()
        self.publisher = FakePublisher()
        self.recorder = MagicMock()
        self.services_built = []

        def new_service(pc, credentials):
            self.services_built.append((pc.name, credentials))
            return self.service

        self.connector = Connector(
            connector_kind,
            MagicMock(),
            self.store,
            CredentialResolver(environ={}),
            new_service,
            KeyExternal,
        )
        self.reconciler = Reconciler(
            kind,
            self.store,
            self.connector,
            self.publisher,
            self.recorder,
            poll_interval=60,
            creation_grace_period=30,
            now=lambda: NOW,
        )

    def record(self, name="k1"):
        return self.store.get(Key, name)

    def cycle(self, name="k1", deadline=None):
        before = len(self.service.mutations())
        result = self.reconciler.reconcile(name, deadline)
        assert len(self.service.mutations()) - before <= 1
        return result


def condition(record, condition_type):
    return get_condition(record.conditions, condition_type)


@pytest.fixture
def harness():
    return Harness()


class TestCreateScenario:
    """A Key is created once its ProviderConfig exists."""

    def test_missing_provider_config_then_create(self, harness):
        harness.store.put(key_body())

        result = harness.cycle()

        record = harness.record()
        assert result.error_kind == "ConfigurationError"
        assert result.requeue_after == 60
        assert condition(record, "Ready")["status"] == "False"
        assert condition(record, "Ready")["reason"] == "ConfigurationError"
        assert harness.service.calls == []
        assert FINALIZER in record.finalizers

        harness.store.configs["pc1"] = PC1
        result = harness.cycle()

        record = harness.record()
        assert harness.services_built[-1] == ("pc1", b"sk-master")
        assert harness.service.mutations() == ["generate_key"]
        op, body = harness.service.calls[0]
        assert body["duration"] == "24h"
        assert body["key_alias"] == "svc-a"
        assert record.at_provider == {"key": "sk-123", "status": "generated"}
        assert harness.publisher.secrets["k1"] == {"key": b"sk-123"}
        assert condition(record, "Synced")["status"] == "True"
        assert record.annotations[ANNOTATION_EXTERNAL_CREATE_SUCCEEDED] >= record.annotations[
            ANNOTATION_EXTERNAL_CREATE_PENDING
        ]
        assert result.requeue_after == 0
        harness.recorder.normal.assert_called()

    def test_converges_within_bounded_cycles(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())

        for _ in range(4):
            harness.cycle()
            record = harness.record()
            if condition(record, "Ready") and condition(record, "Ready")["status"] == "True":
                break

        assert condition(record, "Ready")["reason"] == "Available"
        assert condition(record, "Synced")["status"] == "True"
        assert harness.service.mutations() == ["generate_key"]

    def test_steady_state_writes_nothing(self, harness):
        """A converged record is neither mutated nor rewritten."""
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())
        harness.cycle()
        harness.cycle()
        rv = harness.record().resource_version

        result = harness.cycle()

        assert result.requeue_after == 60
        assert harness.record().resource_version == rv
        assert harness.service.mutations() == ["generate_key"]
        assert harness.publisher.writes == 1

    def test_at_provider_never_holds_bytes(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())
        harness.cycle()
        harness.cycle()

        at_provider = harness.record().at_provider
        assert at_provider
        assert not any(isinstance(v, bytes) for v in at_provider.values())

    def test_create_failure_backs_off(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())
        harness.service.fail["generate_key"] = TransientTransportError("generate_key failed (HTTP 503)")

        result = harness.cycle()

        record = harness.record()
        assert result.backoff
        assert condition(record, "Synced")["reason"] == "TransientTransportError"
        assert condition(record, "Ready")["reason"] == "Creating"
        assert "external-create-failed" in " ".join(record.annotations)
        harness.recorder.warning.assert_called()

    def test_outcome_recorded_when_cancelled_after_create(self, harness):
        """A cancelled cycle still records the create but skips publishing."""
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())
        cancelled = threading.Event()
        harness.service.on_mutation = cancelled.set

        result = harness.cycle(deadline=Deadline(cancelled=cancelled))

        record = harness.record()
        assert result.requeue_after == 0
        assert record.at_provider["key"] == "sk-123"
        assert ANNOTATION_EXTERNAL_CREATE_SUCCEEDED in record.annotations
        assert harness.publisher.secrets == {}

    def test_expired_deadline_issues_no_calls(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())
        cancelled = threading.Event()
        cancelled.set()

        result = harness.cycle(deadline=Deadline(cancelled=cancelled))

        assert result.requeue_after == 0
        assert harness.service.calls == []

    def test_status_conflict_retried(self, harness):
        """A concurrent change does not lose the create outcome."""
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())
        harness.store.status_conflicts = 1

        harness.cycle()

        assert harness.record().at_provider["key"] == "sk-123"
        assert harness.service.mutations() == ["generate_key"]


class TestCreateBookkeeping:
    """Test cases for pending and succeeded create annotations."""

    def test_incomplete_create_not_retried(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.store.put(
            key_body(metadata={"annotations": {ANNOTATION_EXTERNAL_CREATE_PENDING: (NOW - timedelta(minutes=5)).isoformat()}})
        )

        result = harness.cycle()

        assert result.error_kind == "CreateIncomplete"
        assert result.requeue_after is None
        assert not result.backoff
        assert harness.service.mutations() == []
        assert condition(harness.record(), "Ready")["reason"] == "CreateIncomplete"

    def test_failed_create_may_be_retried(self, harness):
        harness.store.configs["pc1"] = PC1
        pending = (NOW - timedelta(minutes=5)).isoformat()
        failed = (NOW - timedelta(minutes=4)).isoformat()
        harness.store.put(
            key_body(
                metadata={
                    "annotations": {
                        ANNOTATION_EXTERNAL_CREATE_PENDING: pending,
                        "litellm.cloud37.dev/external-create-failed": failed,
                    }
                }
            )
        )

        harness.cycle()

        assert harness.service.mutations() == ["generate_key"]

    def test_not_found_on_create_is_retried(self, harness):
        """A "not found" answer from create is recorded as a failed create and retried."""
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())
        harness.service.fail["generate_key"] = ExternalNotFound("generate_key: Team not found", 400)

        result = harness.cycle()

        record = harness.record()
        assert result.backoff
        assert ANNOTATION_EXTERNAL_CREATE_FAILED in record.annotations
        assert condition(record, "Synced")["reason"] == "TransientTransportError"

        del harness.service.fail["generate_key"]
        result = harness.cycle()

        assert result.error_kind is None
        assert harness.service.mutations() == ["generate_key", "generate_key"]
        assert harness.record().at_provider["key"] == "sk-123"

    def test_unclassified_create_error_recorded(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())
        harness.service.fail["generate_key"] = RuntimeError("boom")

        result = harness.cycle()

        assert result.backoff
        assert ANNOTATION_EXTERNAL_CREATE_FAILED in harness.record().annotations

        del harness.service.fail["generate_key"]
        harness.cycle()

        assert harness.service.mutations() == ["generate_key", "generate_key"]

    def test_grace_period_after_create(self, harness):
        """A just-created key that is not observable yet is not created again."""
        harness.store.configs["pc1"] = PC1
        created = (NOW - timedelta(seconds=10)).isoformat()
        harness.store.put(
            key_body(
                metadata={
                    "annotations": {
                        ANNOTATION_EXTERNAL_CREATE_PENDING: created,
                        ANNOTATION_EXTERNAL_CREATE_SUCCEEDED: created,
                    }
                },
                status={"atProvider": {"key": "sk-not-visible-yet"}},
            )
        )

        result = harness.cycle()

        assert result.requeue_after == pytest.approx(20)
        assert harness.service.mutations() == []


class TestUpdateScenario:
    def test_drift_corrected_with_one_update(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())
        harness.cycle()
        harness.cycle()

        body = harness.store.bodies["k1"]
        body["spec"]["forProvider"]["key_alias"] = "svc-b"
        body["metadata"]["generation"] = 2

        result = harness.cycle()
        assert result.requeue_after == 60
        assert harness.service.mutations() == ["generate_key", "update_key"]
        assert harness.service.keys["sk-123"]["key_alias"] == "svc-b"

        harness.cycle()
        assert harness.service.mutations() == ["generate_key", "update_key"]
        assert condition(harness.record(), "Ready")["status"] == "True"

    def test_update_failure_keeps_observation(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.service.keys["sk-1"] = {"key_alias": "old"}
        harness.store.put(key_body({"key_alias": "new"}, status={"atProvider": {"key": "sk-1"}}))
        harness.service.fail["update_key"] = TransientTransportError("update_key failed (HTTP 500)")

        result = harness.cycle()

        record = harness.record()
        assert result.backoff
        assert record.at_provider["key"] == "sk-1"
        assert condition(record, "Synced")["reason"] == "TransientTransportError"


    def test_key_gone_before_update_backs_off(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.service.keys["sk-1"] = {"key_alias": "old"}
        harness.store.put(key_body({"key_alias": "new"}, status={"atProvider": {"key": "sk-1"}}))
        harness.service.fail["update_key"] = ExternalNotFound("update_key: Key not found")

        result = harness.cycle()

        assert result.backoff
        assert condition(harness.record(), "Synced")["reason"] == "TransientTransportError"

class TestDeleteScenario:
    """A record marked for deletion deletes its key before releasing the finalizer."""

    def deleting_body(self, **spec):
        body = key_body(status={"atProvider": {"key": "sk-1", "status": "generated"}})
        body["metadata"]["finalizers"] = [FINALIZER]
        body["metadata"]["deletionTimestamp"] = "2024-06-01T11:00:00Z"
        body["spec"].update(spec)
        return body

    def test_transport_failure_keeps_finalizer(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.service.keys["sk-1"] = {}
        harness.service.fail["delete_keys"] = TransientTransportError("delete_keys request failed")
        harness.store.put(self.deleting_body())

        result = harness.cycle()

        record = harness.record()
        assert result.backoff
        assert FINALIZER in record.finalizers
        assert condition(record, "Ready")["status"] == "False"
        assert condition(record, "Ready")["reason"] == "TransientTransportError"
        assert harness.service.mutations() == ["delete_keys"]

    def test_success_releases_finalizer(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.service.keys["sk-1"] = {}
        harness.publisher.secrets["k1"] = {"key": b"sk-1"}
        harness.store.put(self.deleting_body())

        result = harness.cycle()

        assert result.requeue_after is None
        assert harness.record() is None
        assert harness.service.mutations() == ["delete_keys"]
        assert "sk-1" not in harness.service.keys
        assert "k1" not in harness.publisher.secrets

    def test_already_absent_releases_finalizer(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.store.put(self.deleting_body())

        harness.cycle()

        assert harness.record() is None

    def test_orphan_leaves_external_resource(self, harness):
        harness.service.keys["sk-1"] = {}
        harness.store.put(self.deleting_body(deletionPolicy="Orphan"))

        harness.cycle()

        assert harness.record() is None
        assert harness.service.calls == []
        assert "sk-1" in harness.service.keys

    def test_deleting_without_finalizer_is_ignored(self, harness):
        body = self.deleting_body()
        body["metadata"]["finalizers"] = ["other"]
        harness.store.put(body)

        result = harness.cycle()

        assert result.requeue_after is None
        assert harness.service.calls == []


class TestFailureScheduling:
    def test_contract_violation_never_retried(self):
        """A record the connector does not serve is reported and dropped."""
        harness = Harness(kind=Key, connector_kind=Team)
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body())

        result = harness.cycle()

        assert result.error_kind == "ContractViolation"
        assert result.requeue_after is None
        assert not result.backoff
        assert condition(harness.record(), "Synced")["reason"] == "ContractViolation"

    def test_observe_decode_error_backs_off(self, harness):
        harness.store.configs["pc1"] = PC1
        harness.store.put(key_body(status={"atProvider": {"key": "sk-1"}}))
        harness.service.keys["sk-1"] = {}
        harness.service.key_info = lambda key: {"key": key}

        result = harness.cycle()

        assert result.backoff
        assert result.error_kind == "DecodeError"

    def test_record_gone(self, harness):
        result = harness.cycle("missing")
        assert result.requeue_after is None
        assert result.error_kind is None
