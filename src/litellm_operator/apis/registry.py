"""Explicit registry of managed resource kinds."""

from __future__ import annotations

from typing import Type

from .managed import Managed


class KindRegistry:
    """Maps kind names to their managed resource classes.

    Populated by explicit calls during start-up; nothing registers itself on
    import.
    """

    def __init__(self) -> None:
        self._kinds: dict[str, Type[Managed]] = {}

    def register(self, cls: Type[Managed]) -> None:
        if not cls.kind or not cls.plural:
            raise ValueError(f"{cls.__name__} must define kind and plural")
        if cls.kind in self._kinds and self._kinds[cls.kind] is not cls:
            raise ValueError(f"kind {cls.kind} is already registered")
        self._kinds[cls.kind] = cls

    def get(self, kind: str) -> Type[Managed]:
        try:
            return self._kinds[kind]
        except KeyError:
            raise KeyError(f"kind {kind} is not registered") from None

    def kinds(self) -> list[Type[Managed]]:
        return list(self._kinds.values())

    def __contains__(self, kind: str) -> bool:
        return kind in self._kinds
