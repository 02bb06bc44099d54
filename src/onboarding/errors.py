"""
Typed error values for the onboarding engine.

Public engine operations never raise for user-facing failures. Each failure is
described by a FlowError and returned inside a result object, so the
presentation layer decides how to render it.
"""

from dataclasses import dataclass, asdict
from enum import Enum


class ErrorKind(Enum):
    """Error taxonomy."""
    VALIDATION = "validation"        # Field-level, shown inline
    AVAILABILITY = "availability"    # Remote lookup failed or timed out
    PERSISTENCE = "persistence"      # Store unavailable, memory-only mode
    NAVIGATION = "navigation"        # Illegal move, rejected
    COMMIT = "commit"                # Identity backend rejected the profile
    BUSY = "busy"                    # Another operation is in flight


@dataclass(frozen=True)
class FlowError:
    """One error or warning produced by the engine."""
    kind: ErrorKind
    code: str
    message: str = ""
    field: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


class RegistryError(ValueError):
    """Raised at startup when a step registry definition is invalid."""
