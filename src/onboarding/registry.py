"""
Step Registry.

An immutable, ordered catalogue of the steps in one flow. Each flow (long-form,
short-form, registration) is its own registry; the engine never changes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

from .errors import RegistryError
from .permissions import PermissionSnapshot
from .predicates import SkipFn
from .rules import Rule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    """One ordered stage of a flow."""
    ordinal: int
    key: str
    title: str = ""
    skip: SkipFn | None = None
    rules: tuple[Rule, ...] = field(default_factory=tuple)

    @property
    def permissions(self) -> tuple[str, ...]:
        """Permission names the skip predicate reads."""
        return tuple(getattr(self.skip, "permissions", ()))

    def should_skip(self, answers: Mapping[str, Any], permissions: PermissionSnapshot) -> bool:
        if self.skip is None:
            return False
        try:
            return bool(self.skip(answers, permissions))
        except Exception as e:
            # Broken predicate: show the step
            logger.warning(f"Skip predicate for step {self.key!r} failed, showing step: {e}")
            return False


class StepRegistry:
    """
    Ordered, read-only step catalogue.

    Ordinals must be unique and contiguous from 1..N, keys unique.
    """

    def __init__(self, name: str, steps: Iterable[Step]):
        ordered = sorted(steps, key=lambda s: s.ordinal)
        if not ordered:
            raise RegistryError(f"Registry {name!r} has no steps")

        expected = list(range(1, len(ordered) + 1))
        actual = [s.ordinal for s in ordered]
        if actual != expected:
            raise RegistryError(f"Registry {name!r} ordinals must be contiguous from 1, got {actual}")

        keys = [s.key for s in ordered]
        duplicates = {k for k in keys if keys.count(k) > 1}
        if duplicates:
            raise RegistryError(f"Registry {name!r} has duplicate step keys: {sorted(duplicates)}")

        self._name = name
        self._steps: tuple[Step, ...] = tuple(ordered)
        self._by_key = {s.key: s for s in ordered}

    @property
    def name(self) -> str:
        return self._name

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def total_steps(self) -> int:
        return len(self._steps)

    def get_step(self, ordinal: int) -> Step | None:
        """Step at the ordinal, or None when out of range."""
        if 1 <= ordinal <= len(self._steps):
            return self._steps[ordinal - 1]
        return None

    def get_by_key(self, key: str) -> Step | None:
        return self._by_key.get(key)

    def ordinal_of(self, key: str) -> int:
        step = self._by_key.get(key)
        if step is None:
            raise KeyError(f"Unknown step {key!r} in registry {self._name!r}")
        return step.ordinal

    def step_skip_condition(
        self,
        key: str,
        answers: Mapping[str, Any],
        permissions: PermissionSnapshot,
    ) -> bool:
        """Whether the named step is hidden for these answers and permissions."""
        step = self._by_key.get(key)
        if step is None:
            raise KeyError(f"Unknown step {key!r} in registry {self._name!r}")
        return step.should_skip(answers, permissions)

    def permission_names(self) -> tuple[str, ...]:
        """Every permission any step's skip predicate depends on."""
        names: list[str] = []
        for step in self._steps:
            for name in step.permissions:
                if name not in names:
                    names.append(name)
        return tuple(names)

    def rules_by_key(self) -> dict[str, tuple[Rule, ...]]:
        return {s.key: s.rules for s in self._steps}

    def __repr__(self) -> str:
        return f"StepRegistry({self._name!r}, steps={len(self._steps)})"
