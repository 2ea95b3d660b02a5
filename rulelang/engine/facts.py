"""
Per-execution fact store.

Facts live in an explicit two-level map: entity name -> field name -> value.
The store is always built from a deep copy of the caller's payload and is
owned by exactly one execution, so the caller's data is never mutated.
"""

import copy
from collections.abc import Mapping
from typing import Any

from rulelang.compiler.resolver import ROUTE_SLOT


class _Missing:
    """Sentinel for a path that does not resolve to a value (distinct from null)."""

    _instance = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def present(value: Any) -> Any:
    """Render MISSING as None for traces, diffs and logs."""
    return None if value is MISSING else value


def _segments(path: str) -> tuple[str, str] | None:
    parts = path.split(".")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


class FactStore:
    """
    Mutable entity -> field -> value map for one execution.

    Top-level payload values that are not mappings are carried through
    untouched; reading a field beneath them yields MISSING.
    """

    def __init__(self, state: dict[str, Any]):
        self._state = state

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "FactStore":
        """Build a store from a private deep copy of the caller's payload."""
        state: dict[str, Any] = {}
        for key, value in (payload or {}).items():
            if isinstance(value, Mapping):
                state[str(key)] = {str(k): copy.deepcopy(v) for k, v in value.items()}
            else:
                state[str(key)] = copy.deepcopy(value)
        return cls(state)

    def read(self, path: str) -> Any:
        """
        Read the value at ``entity.field``.

        Returns:
            The stored value (possibly None), or MISSING if the entity or field
            is absent or the path is not a two-segment path
        """
        segments = _segments(path)
        if segments is None:
            return MISSING
        entity_name, field_name = segments
        entity = self._state.get(entity_name)
        if not isinstance(entity, dict):
            return MISSING
        return entity.get(field_name, MISSING)

    def write(self, path: str, value: Any) -> Any:
        """
        Write ``value`` at ``entity.field`` and return the previous value.

        The value is deep-copied so later writes never alias earlier ones.
        Paths are checked against the catalog before any write; a path that
        is not two segments here is a caller bug.
        """
        segments = _segments(path)
        if segments is None:
            raise ValueError(f'Cannot write to "{path}": expected entity.field')
        entity_name, field_name = segments
        entity = self._state.get(entity_name)
        if not isinstance(entity, dict):
            entity = {}
            self._state[entity_name] = entity
        previous = entity.get(field_name, MISSING)
        entity[field_name] = copy.deepcopy(value)
        return previous

    def read_route(self) -> Any:
        """Current route assignment (a dict), or MISSING if none."""
        if ROUTE_SLOT not in self._state:
            return MISSING
        return copy.deepcopy(self._state[ROUTE_SLOT])

    def write_route(self, route: dict[str, Any]) -> None:
        self._state[ROUTE_SLOT] = copy.deepcopy(route)

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the whole state, for results and example comparison."""
        return copy.deepcopy(self._state)
