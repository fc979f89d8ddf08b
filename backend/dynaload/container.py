from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping


class Definitions:
    """Named service definitions shared by autowire and route modules.

    A callable value is a factory: it receives the container on first
    ``get`` and its result is kept. Any other value is stored as is.
    """

    def __init__(self):
        self._factories: Dict[str, Callable[[Definitions], Any]] = {}
        self._resolved: Dict[str, Any] = {}

    def add_definitions(self, entries: Mapping[str, Any]) -> None:
        for key, value in entries.items():
            if key in self._factories or key in self._resolved:
                raise ValueError(f"Definition already registered: {key}")
            if callable(value):
                self._factories[key] = value
            else:
                self._resolved[key] = value

    def get(self, key: str) -> Any:
        if key in self._resolved:
            return self._resolved[key]
        factory = self._factories.get(key)
        if factory is None:
            raise KeyError(f"No definition registered for {key!r}")
        value = factory(self)
        self._resolved[key] = value
        return value

    def has(self, key: str) -> bool:
        return key in self._resolved or key in self._factories

    def keys(self) -> List[str]:
        return sorted(set(self._resolved) | set(self._factories))
