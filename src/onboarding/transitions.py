"""
Transition Resolver.

Computes the next or previous visible step by walking ordinals and asking
each candidate's skip predicate. Forward and backward walks use the same
predicates over the same inputs, so a path produced by advancing is replayed
exactly in reverse by retreating.
"""

import logging
from typing import Any, Final, Mapping

from .permissions import PermissionSnapshot
from .registry import StepRegistry

logger = logging.getLogger(__name__)

COMPLETE: Final = "COMPLETE"


class TransitionResolver:
    """Data-driven next/previous step resolution over one registry."""

    def __init__(self, registry: StepRegistry):
        self._registry = registry

    @property
    def registry(self) -> StepRegistry:
        return self._registry

    def _position(self, current_key: str | None) -> int:
        # None (or COMPLETE) is the finished position, N+1
        if current_key is None or current_key == COMPLETE:
            return self._registry.total_steps() + 1
        return self._registry.ordinal_of(current_key)

    def next_ordinal(
        self,
        current_ordinal: int,
        answers: Mapping[str, Any],
        permissions: PermissionSnapshot,
    ) -> int:
        """First visible ordinal after current_ordinal, or N+1 when none remain."""
        total = self._registry.total_steps()
        for ordinal in range(current_ordinal + 1, total + 1):
            step = self._registry.get_step(ordinal)
            if step.should_skip(answers, permissions):
                logger.debug(f"Skipping step {step.key!r} going forward")
                continue
            return ordinal
        return total + 1

    def previous_ordinal(
        self,
        current_ordinal: int,
        answers: Mapping[str, Any],
        permissions: PermissionSnapshot,
    ) -> int | None:
        """Last visible ordinal before current_ordinal, or None at the start."""
        for ordinal in range(current_ordinal - 1, 0, -1):
            step = self._registry.get_step(ordinal)
            if step.should_skip(answers, permissions):
                logger.debug(f"Skipping step {step.key!r} going back")
                continue
            return ordinal
        return None

    def resolve_next(
        self,
        current_key: str,
        answers: Mapping[str, Any],
        permissions: PermissionSnapshot | None = None,
    ) -> str:
        """Key of the next visible step, or COMPLETE."""
        if permissions is None:
            permissions = PermissionSnapshot.empty()
        ordinal = self.next_ordinal(self._position(current_key), answers, permissions)
        step = self._registry.get_step(ordinal)
        return step.key if step is not None else COMPLETE

    def resolve_previous(
        self,
        current_key: str | None,
        answers: Mapping[str, Any],
        permissions: PermissionSnapshot | None = None,
    ) -> str | None:
        """Key of the previous visible step, or None when already first."""
        if permissions is None:
            permissions = PermissionSnapshot.empty()
        ordinal = self.previous_ordinal(self._position(current_key), answers, permissions)
        if ordinal is None:
            return None
        return self._registry.get_step(ordinal).key

