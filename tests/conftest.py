"""
Pytest configuration and fixtures for the onboarding engine tests.

Collaborators (store, permissions, identity backend, availability service)
are replaced with in-memory fakes so every test runs without I/O.
"""

import os
from datetime import date

import pytest

# Set test environment before importing onboarding modules
os.environ["ONBOARDING_ENV"] = "development"
os.environ["ONBOARDING_AVAILABILITY_TIMEOUT_SECONDS"] = "0.5"

from onboarding.identity import CommitResult
from onboarding.permissions import PermissionState, StaticPermissionProvider
from onboarding.storage import MemoryKeyValueStore
from onboarding_flows.services import InMemoryIdentityBackend, StaticAvailabilityChecker


def birth_date_for_age(age: int, today: date | None = None) -> str:
    """ISO birth date that makes someone exactly `age` today."""
    today = today or date.today()
    try:
        born = today.replace(year=today.year - age)
    except ValueError:
        # Feb 29 on a non-leap target year
        born = today.replace(year=today.year - age, day=28)
    return born.isoformat()


class FailingKeyValueStore:
    """Store whose every call raises, like native storage that is unavailable."""

    def __init__(self) -> None:
        self.calls = 0

    def get(self, key: str) -> bytes | None:
        self.calls += 1
        raise OSError("storage unavailable")

    def set(self, key: str, value: bytes) -> None:
        self.calls += 1
        raise OSError("storage unavailable")

    def remove(self, key: str) -> None:
        self.calls += 1
        raise OSError("storage unavailable")


class CountingKeyValueStore(MemoryKeyValueStore):
    """Memory store that counts writes."""

    def __init__(self) -> None:
        super().__init__()
        self.writes = 0
        self.removes = 0

    def set(self, key: str, value: bytes) -> None:
        self.writes += 1
        super().set(key, value)

    def remove(self, key: str) -> None:
        self.removes += 1
        super().remove(key)


class FlakyKeyValueStore(CountingKeyValueStore):
    """Memory store whose listed writes and removes fail (1-based call numbers)."""

    def __init__(self, fail_writes=(), fail_removes=()):
        super().__init__()
        self.fail_writes = set(fail_writes)
        self.fail_removes = set(fail_removes)

    def set(self, key: str, value: bytes) -> None:
        if self.writes + 1 in self.fail_writes:
            self.writes += 1
            raise OSError("storage temporarily unavailable")
        super().set(key, value)

    def remove(self, key: str) -> None:
        if self.removes + 1 in self.fail_removes:
            self.removes += 1
            raise OSError("storage temporarily unavailable")
        super().remove(key)


class RejectingIdentityBackend:
    """Rejects the first `failures` commits, then accepts."""

    def __init__(self, failures: int = 1):
        self.failures = failures
        self.commit_calls = 0

    def commit_profile(self, answers) -> CommitResult:
        self.commit_calls += 1
        if self.commit_calls <= self.failures:
            return CommitResult.rejected("Backend unavailable", code="backend_unavailable")
        return CommitResult.accepted(f"profile-{self.commit_calls}")


@pytest.fixture
def store():
    return CountingKeyValueStore()


@pytest.fixture
def failing_store():
    return FailingKeyValueStore()


@pytest.fixture
def flaky_store():
    """Factory for stores that fail on chosen calls and then recover."""
    return FlakyKeyValueStore


@pytest.fixture
def identity():
    return InMemoryIdentityBackend()


@pytest.fixture
def availability():
    return StaticAvailabilityChecker()


@pytest.fixture
def slow_availability():
    return StaticAvailabilityChecker(delay=0.05)


@pytest.fixture
def no_permissions():
    return StaticPermissionProvider()


@pytest.fixture
def notifications_granted():
    return StaticPermissionProvider({"notifications": PermissionState.GRANTED})


@pytest.fixture
def born():
    """Factory for ISO birth dates of a given age."""
    return birth_date_for_age


@pytest.fixture
def rejecting_identity():
    return RejectingIdentityBackend(failures=1)
