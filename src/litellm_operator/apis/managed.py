"""Base wrapper for managed resource bodies.

A managed resource is a cluster-scoped custom object whose ``spec.forProvider``
declares the desired state of one external resource and whose
``status.atProvider`` reports what was last observed. Kinds differ only in
their parameter and observation types, so the reconciler works against this
interface and never switches on concrete kinds.
"""

from __future__ import annotations

import copy
from typing import Any

from ..constants import (
    API_GROUP_VERSION,
    DEFAULT_PROVIDER_CONFIG,
    DELETION_POLICY_DELETE,
)


class Managed:
    """A managed resource backed by its Kubernetes object body."""

    kind: str = ""
    plural: str = ""

    def __init__(self, body: dict[str, Any]) -> None:
        self._body = copy.deepcopy(dict(body))
        self._body.setdefault("apiVersion", API_GROUP_VERSION)
        self._body.setdefault("kind", self.kind)
        self._body.setdefault("metadata", {})
        self._body.setdefault("spec", {})
        self._body.setdefault("status", {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, generation={self.generation})"

    # Metadata

    @property
    def metadata(self) -> dict[str, Any]:
        return self._body["metadata"]

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def uid(self) -> str:
        return self.metadata.get("uid", "")

    @property
    def generation(self) -> int:
        return self.metadata.get("generation", 0)

    @property
    def resource_version(self) -> str | None:
        return self.metadata.get("resourceVersion")

    @property
    def annotations(self) -> dict[str, str]:
        if self.metadata.get("annotations") is None:
            self.metadata["annotations"] = {}
        return self.metadata["annotations"]

    @property
    def labels(self) -> dict[str, str]:
        if self.metadata.get("labels") is None:
            self.metadata["labels"] = {}
        return self.metadata["labels"]

    @property
    def finalizers(self) -> list[str]:
        if self.metadata.get("finalizers") is None:
            self.metadata["finalizers"] = []
        return self.metadata["finalizers"]

    @property
    def deletion_timestamp(self) -> str | None:
        return self.metadata.get("deletionTimestamp")

    @property
    def deleting(self) -> bool:
        return self.deletion_timestamp is not None

    # Spec

    @property
    def spec(self) -> dict[str, Any]:
        return self._body["spec"]

    @property
    def for_provider(self) -> dict[str, Any]:
        return self.spec.get("forProvider") or {}

    @property
    def provider_config_name(self) -> str:
        ref = self.spec.get("providerConfigRef") or {}
        return ref.get("name") or DEFAULT_PROVIDER_CONFIG

    @property
    def deletion_policy(self) -> str:
        return self.spec.get("deletionPolicy") or DELETION_POLICY_DELETE

    @property
    def connection_secret_ref(self) -> dict[str, str] | None:
        ref = self.spec.get("writeConnectionSecretToRef")
        if not ref or not ref.get("name"):
            return None
        return ref

    # Status

    @property
    def status(self) -> dict[str, Any]:
        if self._body.get("status") is None:
            self._body["status"] = {}
        return self._body["status"]

    @property
    def conditions(self) -> list[dict[str, Any]]:
        if self.status.get("conditions") is None:
            self.status["conditions"] = []
        return self.status["conditions"]

    @conditions.setter
    def conditions(self, value: list[dict[str, Any]]) -> None:
        self.status["conditions"] = value

    @property
    def at_provider(self) -> dict[str, Any]:
        return self.status.get("atProvider") or {}

    @at_provider.setter
    def at_provider(self, value: dict[str, Any]) -> None:
        # Observations replace the previous value wholesale.
        self.status["atProvider"] = copy.deepcopy(value)

    def to_body(self) -> dict[str, Any]:
        """Return a copy of the Kubernetes representation."""
        return copy.deepcopy(self._body)

    def event_body(self) -> dict[str, Any]:
        """Return the minimal body needed to post events about this record."""
        return {
            "apiVersion": self._body["apiVersion"],
            "kind": self._body["kind"],
            "metadata": {
                "name": self.name,
                "uid": self.uid,
                "namespace": self.metadata.get("namespace"),
            },
        }


def drop_unset(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose values are unset (None, empty string, list or map)."""
    return {k: v for k, v in data.items() if v not in (None, "", [], {})}
