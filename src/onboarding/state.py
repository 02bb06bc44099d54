"""
Onboarding Progress State.

Tracks where a user is in a flow and what they have entered so far.
Persisted by the ProgressStore after every successful controller mutation so
an interrupted flow resumes where it stopped.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
import json


class ProgressStateError(ValueError):
    """Stored progress does not describe a valid state for the registry."""


@dataclass
class ProgressState:
    """
    Resumable flow position.

    current_step is an ordinal in 1..N, or N+1 once every step is done and
    the profile is waiting to be committed.
    """
    current_step: int = 1
    completed_steps: set[int] = field(default_factory=set)
    answers: dict[str, Any] = field(default_factory=dict)
    saved_at: str = ""

    def is_finished(self, total_steps: int) -> bool:
        return self.current_step == total_steps + 1

    def check(self, total_steps: int) -> None:
        """Raise ProgressStateError if the state violates the registry bounds."""
        if not 1 <= self.current_step <= total_steps + 1:
            raise ProgressStateError(
                f"current_step {self.current_step} outside 1..{total_steps + 1}"
            )
        stray = {s for s in self.completed_steps if not 1 <= s <= total_steps}
        if stray:
            raise ProgressStateError(f"completed_steps outside 1..{total_steps}: {sorted(stray)}")

    def touch(self) -> None:
        self.saved_at = datetime.now(timezone.utc).isoformat()

    def copy(self) -> "ProgressState":
        return ProgressState(
            current_step=self.current_step,
            completed_steps=set(self.completed_steps),
            answers=dict(self.answers),
            saved_at=self.saved_at,
        )

    # Two logical records: position and answers are stored under separate keys

    def progress_dict(self) -> dict:
        return {
            "current_step": self.current_step,
            "completed_steps": sorted(self.completed_steps),
            "saved_at": self.saved_at,
        }

    def to_dict(self) -> dict:
        """Serialize state to dict for JSON storage."""
        data = self.progress_dict()
        data["answers"] = dict(self.answers)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ProgressState":
        """Deserialize state from dict. Raises ProgressStateError on malformed input."""
        try:
            current = data.get("current_step", 1)
            completed = data.get("completed_steps") or []
            if isinstance(current, bool) or not isinstance(current, int):
                raise ProgressStateError(f"current_step must be an int, got {current!r}")
            if any(isinstance(s, bool) or not isinstance(s, int) for s in completed):
                raise ProgressStateError(f"completed_steps must be ints, got {completed!r}")
            answers = data.get("answers") or {}
            if not isinstance(answers, dict):
                raise ProgressStateError("answers must be an object")
            return cls(
                current_step=current,
                completed_steps=set(completed),
                answers=answers,
                saved_at=str(data.get("saved_at") or ""),
            )
        except (AttributeError, TypeError) as e:
            raise ProgressStateError(f"Malformed progress record: {e}") from e

    def to_json(self) -> str:
        """Serialize state to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> "ProgressState":
        """Deserialize state from JSON string."""
        try:
            return cls.from_dict(json.loads(json_str))
        except json.JSONDecodeError as e:
            raise ProgressStateError(f"Invalid JSON: {e}") from e


@dataclass
class CompletionRecord:
    """Marker written once the identity backend has accepted the profile."""
    profile_id: str
    completed_at: str = ""

    def to_dict(self) -> dict:
        return {"profile_id": self.profile_id, "completed_at": self.completed_at}

    @classmethod
    def from_dict(cls, data: dict) -> "CompletionRecord":
        if not isinstance(data, dict) or not isinstance(data.get("profile_id"), str):
            raise ProgressStateError(f"Malformed completion record: {data!r}")
        return cls(profile_id=data["profile_id"], completed_at=str(data.get("completed_at") or ""))

    @classmethod
    def now(cls, profile_id: str) -> "CompletionRecord":
        return cls(profile_id=profile_id, completed_at=datetime.now(timezone.utc).isoformat())
