"""
Identity backend contract.

The backend receives the final collected answers exactly once per successful
completion and reports either the new profile id or a rejection.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable


@dataclass(frozen=True)
class CommitResult:
    profile_id: str | None = None
    error: str | None = None
    code: str = "commit_rejected"

    @property
    def ok(self) -> bool:
        return self.profile_id is not None and self.error is None

    @classmethod
    def accepted(cls, profile_id: str) -> "CommitResult":
        return cls(profile_id=profile_id)

    @classmethod
    def rejected(cls, error: str, code: str = "commit_rejected") -> "CommitResult":
        return cls(error=error, code=code)


@runtime_checkable
class IdentityClient(Protocol):
    """Accepts the final profile."""

    def commit_profile(self, answers: Mapping[str, Any]) -> CommitResult:
        ...
