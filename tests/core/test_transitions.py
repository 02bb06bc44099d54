"""
Tests for TransitionResolver.

Covers skip handling in both directions and forward/backward symmetry.
"""

import pytest

from onboarding.permissions import PermissionSnapshot, PermissionState
from onboarding.predicates import AgeBelow, PermissionGranted
from onboarding.registry import Step, StepRegistry
from onboarding.transitions import COMPLETE, TransitionResolver


def _snapshot(**states: str) -> PermissionSnapshot:
    return PermissionSnapshot({k: PermissionState(v) for k, v in states.items()})


@pytest.fixture
def resolver():
    registry = StepRegistry("sample", [
        Step(1, "birthday"),
        Step(2, "notifications", skip=PermissionGranted("notifications")),
        Step(3, "avatar"),
        Step(4, "phone_intro", skip=AgeBelow(16)),
        Step(5, "phone_verify", skip=AgeBelow(16)),
        Step(6, "done"),
    ])
    return TransitionResolver(registry)


def _forward_path(resolver, answers, permissions):
    path = ["birthday"]
    while True:
        nxt = resolver.resolve_next(path[-1], answers, permissions)
        if nxt == COMPLETE:
            return path
        path.append(nxt)


def _backward_path(resolver, start, answers, permissions):
    path = [start]
    while True:
        prev = resolver.resolve_previous(path[-1], answers, permissions)
        if prev is None:
            return path
        path.append(prev)


class TestResolveNext:
    """Forward resolution."""

    def test_no_skips(self, resolver, born):
        answers = {"date_of_birth": born(30)}
        assert resolver.resolve_next("birthday", answers, _snapshot()) == "notifications"

    def test_granted_permission_skips_step(self, resolver):
        granted = _snapshot(notifications="granted")
        assert resolver.resolve_next("birthday", {}, granted) == "avatar"

    def test_unknown_permission_does_not_skip(self, resolver):
        unknown = _snapshot(notifications="unknown")
        assert resolver.resolve_next("birthday", {}, unknown) == "notifications"

    def test_underage_skips_consecutive_steps(self, resolver, born):
        answers = {"date_of_birth": born(15)}
        assert resolver.resolve_next("avatar", answers, _snapshot()) == "done"

    def test_last_step_resolves_complete(self, resolver):
        assert resolver.resolve_next("done", {}, _snapshot()) == COMPLETE

    def test_trailing_skipped_steps_resolve_complete(self, born):
        registry = StepRegistry("tail", [Step(1, "a"), Step(2, "b", skip=AgeBelow(16))])
        resolver = TransitionResolver(registry)
        assert resolver.resolve_next("a", {"date_of_birth": born(10)}) == COMPLETE

    def test_permissions_default_to_unknown(self, resolver):
        assert resolver.resolve_next("birthday", {}) == "notifications"


class TestResolvePrevious:
    """Backward resolution."""

    def test_first_step_has_no_previous(self, resolver):
        assert resolver.resolve_previous("birthday", {}, _snapshot()) is None

    def test_skips_backward_with_same_predicates(self, resolver, born):
        answers = {"date_of_birth": born(15)}
        assert resolver.resolve_previous("done", answers, _snapshot()) == "avatar"

    def test_from_finished_position(self, resolver):
        assert resolver.resolve_previous(COMPLETE, {}, _snapshot()) == "done"
        assert resolver.resolve_previous(None, {}, _snapshot()) == "done"

    def test_granted_permission_skipped_backward(self, resolver):
        granted = _snapshot(notifications="granted")
        assert resolver.resolve_previous("avatar", {}, granted) == "birthday"


class TestSymmetry:
    """Walking back from the end of a forward path replays it in reverse."""

    @pytest.mark.parametrize("age", [10, 15, 16, 40])
    @pytest.mark.parametrize("notifications", ["granted", "denied", "unknown"])
    def test_backward_reverses_forward(self, resolver, born, age, notifications):
        answers = {"date_of_birth": born(age)}
        permissions = _snapshot(notifications=notifications)

        forward = _forward_path(resolver, answers, permissions)
        backward = _backward_path(resolver, forward[-1], answers, permissions)

        assert backward == list(reversed(forward))
