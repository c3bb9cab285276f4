"""Comparison of desired parameters against observed external state."""

from __future__ import annotations

import math
from typing import Any, Iterable


def _equal(desired: Any, observed: Any) -> bool:
    if isinstance(desired, dict):
        if not isinstance(observed, dict):
            return False
        return all(_equal(v, observed.get(k)) for k, v in desired.items())
    if isinstance(desired, list):
        if not isinstance(observed, list):
            return False
        return sorted(map(str, desired)) == sorted(map(str, observed))
    if isinstance(desired, bool) or isinstance(observed, bool):
        return desired == observed
    if isinstance(desired, (int, float)) and isinstance(observed, (int, float)):
        return math.isclose(desired, observed, rel_tol=1e-9, abs_tol=1e-9)
    return desired == observed


def changed_fields(
    desired: dict[str, Any],
    observed: dict[str, Any],
    ignore: Iterable[str] = (),
) -> list[str]:
    """Names of the desired fields that differ from the observed state.

    Fields the external API never reports back (write-only) are listed in
    ``ignore``. Desired maps only need to be contained in the observed map.
    """
    skip = set(ignore)
    return sorted(k for k, v in desired.items() if k not in skip and not _equal(v, observed.get(k)))
