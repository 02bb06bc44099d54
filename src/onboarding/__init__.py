"""
Onboarding Workflow Engine.

Sequences a multi-step account-setup flow: decides which steps to show from
collected answers and host permission state, gates forward progress on per-step
validation, and persists progress so an interrupted flow resumes.

Components (leaves first):
1. StepRegistry - ordered step catalogue with skip predicates
2. ValidationGate - declarative per-step rules plus remote uniqueness checks
3. TransitionResolver - next/previous visible step
4. ProgressStore - best-effort persistence with in-memory fallback
5. WorkflowController - the public state machine

Concrete flows live in the onboarding_flows package.
"""

from .controller import FlowStatus, Outcome, OutcomeStatus, WorkflowController, WorkflowView
from .errors import ErrorKind, FlowError, RegistryError
from .identity import CommitResult, IdentityClient
from .permissions import PermissionSnapshot, PermissionState, StaticPermissionProvider
from .progress import ProgressStore, StoreResult
from .registry import Step, StepRegistry
from .state import ProgressState
from .storage import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .transitions import COMPLETE, TransitionResolver
from .validation import CancelToken, ValidationGate, ValidationResult

__all__ = [
    "COMPLETE",
    "CancelToken",
    "CommitResult",
    "ErrorKind",
    "FileKeyValueStore",
    "FlowError",
    "FlowStatus",
    "IdentityClient",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "Outcome",
    "OutcomeStatus",
    "PermissionSnapshot",
    "PermissionState",
    "ProgressState",
    "ProgressStore",
    "RegistryError",
    "StaticPermissionProvider",
    "Step",
    "StepRegistry",
    "StoreResult",
    "TransitionResolver",
    "ValidationGate",
    "ValidationResult",
    "WorkflowController",
    "WorkflowView",
]
