"""External client for Key resources."""

from __future__ import annotations

import logging
from typing import Any

from ..apis.key import Key, KeyObservation
from ..apis.managed import Managed
from ..builders.key import create_key_request, update_key_request
from ..constants import KIND_KEY
from ..errors import DecodeError, ExternalAPIError, ExternalNotFound, NotManagedRecord
from ..managed.interfaces import ExternalCreation, ExternalObservation, ExternalUpdate
from ..services.litellm.client import LiteLLMClient
from .diff import changed_fields

logger = logging.getLogger(__name__)

# Parameters LiteLLM accepts but never reports back.
WRITE_ONLY_FIELDS = ("duration", "key")

KEY_STATUS_GENERATED = "generated"
KEY_STATUS_BLOCKED = "blocked"


def _as_key(record: Managed) -> Key:
    if not isinstance(record, Key):
        raise NotManagedRecord(KIND_KEY, type(record).__name__)
    return record


def _details(key: str) -> dict[str, bytes]:
    return {"key": key.encode("utf-8")}


class KeyExternal:
    """Observes, creates, updates and deletes LiteLLM virtual keys."""

    def __init__(self, service: LiteLLMClient) -> None:
        self.service = service

    def observe(self, record: Managed) -> ExternalObservation:
        cr = _as_key(record)
        key = cr.external_key
        if not key:
            # Never created and no pre-existing key requested.
            return ExternalObservation(exists=False)

        try:
            resp = self.service.key_info(key)
        except ExternalNotFound:
            return ExternalObservation(exists=False)

        info: dict[str, Any] = resp.get("info")
        if not isinstance(info, dict):
            raise DecodeError("cannot decode key_info response: missing info")

        observation = KeyObservation(
            key=key,
            expires=info.get("expires"),
            user_id=info.get("user_id"),
            status=KEY_STATUS_BLOCKED if info.get("blocked") else KEY_STATUS_GENERATED,
        )
        diff = changed_fields(cr.parameters.to_dict(), info, ignore=WRITE_ONLY_FIELDS)
        if diff:
            logger.debug(f"Key {cr.name} differs from desired state in {diff}")

        return ExternalObservation(
            exists=True,
            up_to_date=not diff,
            at_provider=observation.to_dict(),
            connection_details=_details(key),
        )

    def create(self, record: Managed) -> ExternalCreation:
        cr = _as_key(record)
        try:
            resp = self.service.generate_key(create_key_request(cr.parameters))
        except ExternalNotFound as e:
            # A referenced team or user is missing, or apiBase points elsewhere.
            raise ExternalAPIError("cannot create key", e.status_code, e) from e

        key = resp.get("key")
        if not key:
            raise DecodeError("cannot decode generate_key response: missing key")

        observation = KeyObservation(
            key=key,
            expires=resp.get("expires"),
            user_id=resp.get("user_id"),
            status=resp.get("status") or KEY_STATUS_GENERATED,
        )
        return ExternalCreation(at_provider=observation.to_dict(), connection_details=_details(key))

    def update(self, record: Managed) -> ExternalUpdate:
        cr = _as_key(record)
        key = cr.external_key
        if not key:
            raise DecodeError("cannot update key: no key is known for this resource")

        try:
            self.service.update_key(update_key_request(cr.parameters, key))
        except ExternalNotFound as e:
            raise ExternalAPIError("cannot update key", e.status_code, e) from e
        return ExternalUpdate(connection_details=_details(key))

    def delete(self, record: Managed) -> None:
        cr = _as_key(record)
        key = cr.external_key
        if not key:
            return
        try:
            self.service.delete_keys([key])
        except ExternalNotFound:
            logger.debug(f"Key for {cr.name} is already absent")
