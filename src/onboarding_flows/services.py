"""
In-process stand-ins for the remote collaborators.

StaticAvailabilityChecker answers uniqueness lookups from fixed taken-value
lists with optional latency. InMemoryIdentityBackend accepts profiles and hands
out ids. Both back the CLI and the test-suite.
"""

import asyncio
import logging
import uuid
from typing import Any, Iterable, Mapping

from onboarding.identity import CommitResult

logger = logging.getLogger(__name__)

DEFAULT_TAKEN = {
    "username": {"john", "jane", "admin", "test", "user123"},
    "email": {"test@example.com", "admin@test.com"},
    "contact_value": {"test@example.com", "admin@test.com"},
}


class StaticAvailabilityChecker:
    """Availability lookups against fixed taken-value lists."""

    def __init__(
        self,
        taken: Mapping[str, Iterable[str]] | None = None,
        delay: float = 0.0,
    ):
        source = DEFAULT_TAKEN if taken is None else taken
        self._taken = {field: {v.lower() for v in values} for field, values in source.items()}
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    def reserve(self, field: str, value: str) -> None:
        self._taken.setdefault(field, set()).add(value.lower())

    async def is_available(self, field: str, value: str) -> bool:
        self.calls.append((field, value))
        if self.delay:
            await asyncio.sleep(self.delay)
        return value.lower() not in self._taken.get(field, set())


class InMemoryIdentityBackend:
    """Identity backend that keeps accepted profiles in a dict."""

    def __init__(self, required_fields: Iterable[str] = ()):
        self.required_fields = tuple(required_fields)
        self.profiles: dict[str, dict[str, Any]] = {}
        self.commit_calls = 0

    def commit_profile(self, answers: Mapping[str, Any]) -> CommitResult:
        self.commit_calls += 1
        missing = [f for f in self.required_fields if not answers.get(f)]
        if missing:
            return CommitResult.rejected(f"Missing profile fields: {', '.join(missing)}", code="incomplete_profile")

        profile_id = str(uuid.uuid4())
        self.profiles[profile_id] = dict(answers)
        logger.info(f"Accepted profile {profile_id}")
        return CommitResult.accepted(profile_id)
