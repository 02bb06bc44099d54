"""
Device permission snapshot.

The host platform reports each named permission as granted, denied or unknown.
A snapshot is read on demand from a PermissionProvider and is never persisted.
"""

import logging
from enum import Enum
from typing import Iterable, Iterator, Mapping, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class PermissionState(Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNKNOWN = "unknown"


@runtime_checkable
class PermissionProvider(Protocol):
    """Host permission subsystem. May return stale values."""

    def query(self, name: str) -> PermissionState:
        ...


class PermissionSnapshot(Mapping[str, PermissionState]):
    """
    Immutable name -> PermissionState mapping.

    Names that were never queried read as UNKNOWN.
    """

    def __init__(self, states: Mapping[str, PermissionState] | None = None):
        self._states = dict(states or {})

    def __getitem__(self, name: str) -> PermissionState:
        return self._states[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def state(self, name: str) -> PermissionState:
        return self._states.get(name, PermissionState.UNKNOWN)

    def is_granted(self, name: str) -> bool:
        return self.state(name) is PermissionState.GRANTED

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v.value}" for k, v in sorted(self._states.items()))
        return f"PermissionSnapshot({inner})"

    @classmethod
    def empty(cls) -> "PermissionSnapshot":
        return cls()

    @classmethod
    def capture(cls, provider: PermissionProvider | None, names: Iterable[str]) -> "PermissionSnapshot":
        """
        Query each named permission from the provider.

        A provider that fails or answers with an unrecognised value yields UNKNOWN
        for that permission, which never causes a step to be skipped.
        """
        states: dict[str, PermissionState] = {}
        for name in names:
            if provider is None:
                states[name] = PermissionState.UNKNOWN
                continue
            try:
                raw = provider.query(name)
                states[name] = raw if isinstance(raw, PermissionState) else PermissionState(raw)
            except Exception as e:
                logger.warning(f"Permission query failed for {name!r}, treating as unknown: {e}")
                states[name] = PermissionState.UNKNOWN
        return cls(states)


class StaticPermissionProvider:
    """PermissionProvider backed by a fixed mapping (CLI flags, tests)."""

    def __init__(self, states: Mapping[str, PermissionState | str] | None = None):
        self._states = {k: PermissionState(v) for k, v in (states or {}).items()}

    def set(self, name: str, state: PermissionState | str) -> None:
        self._states[name] = PermissionState(state)

    def query(self, name: str) -> PermissionState:
        return self._states.get(name, PermissionState.UNKNOWN)
