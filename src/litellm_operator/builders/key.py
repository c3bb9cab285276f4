"""Builder for key request bodies."""

from __future__ import annotations

from typing import Any

from ..apis.key import KeyParameters


def create_key_request(params: KeyParameters) -> dict[str, Any]:
    """Build the /key/generate body from the desired parameters.

    Unset parameters are left out so the proxy applies its own defaults.
    """
    return params.to_dict()


def update_key_request(params: KeyParameters, key: str) -> dict[str, Any]:
    """Build the /key/update body for an existing key."""
    body = params.to_dict()
    # Duration only applies when a key is generated.
    body.pop("duration", None)
    body["key"] = key
    return body
