"""
Workflow Controller.

The public state machine for one onboarding session. It composes the step
registry, validation gate, transition resolver and progress store, and owns
the session's ProgressState: every write to it goes through this class.

States: Step(1)..Step(N), ready-to-complete (ordinal N+1) and Completed.
Completed is terminal.

Every operation returns an Outcome instead of raising, carrying the view the
presentation layer renders next.

Usage:
    controller = WorkflowController.for_registry(registry, store, identity, permissions)
    controller.start()
    outcome = await controller.advance({"username": "sam_k"})
    if not outcome.ok:
        show(outcome.error)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, Field

from .answers import merge_answers
from .errors import ErrorKind, FlowError
from .identity import CommitResult, IdentityClient
from .permissions import PermissionProvider, PermissionSnapshot
from .progress import ProgressStore
from .registry import StepRegistry
from .state import ProgressState
from .storage import KeyValueStore
from .transitions import TransitionResolver
from .validation import AvailabilityChecker, CancelToken, ValidationGate

logger = logging.getLogger(__name__)


class FlowStatus(Enum):
    IN_PROGRESS = "in_progress"
    READY_TO_COMPLETE = "ready_to_complete"  # Every step done, commit pending
    COMPLETED = "completed"


class OutcomeStatus(Enum):
    OK = "ok"
    NOOP = "noop"
    INVALID = "invalid"
    REJECTED = "rejected"
    BUSY = "busy"
    CANCELLED = "cancelled"
    COMMIT_FAILED = "commit_failed"


class WorkflowView(BaseModel):
    """What the presentation layer renders after each controller call."""
    flow: str
    status: str
    current_step_key: str | None
    current_step_title: str = ""
    current_ordinal: int
    is_first_step: bool
    is_last_step: bool
    total_steps: int
    completed_steps: list[int] = Field(default_factory=list)
    last_error: dict | None = None
    warnings: list[dict] = Field(default_factory=list)
    busy: bool = False


@dataclass
class Outcome:
    """Result of one controller call."""
    status: OutcomeStatus
    view: WorkflowView
    error: FlowError | None = None
    warnings: list[FlowError] = field(default_factory=list)
    profile_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (OutcomeStatus.OK, OutcomeStatus.NOOP)


def _navigation_error(code: str, message: str) -> FlowError:
    return FlowError(ErrorKind.NAVIGATION, code, message)


class WorkflowController:
    """State machine for one onboarding session."""

    def __init__(
        self,
        registry: StepRegistry,
        gate: ValidationGate,
        progress: ProgressStore,
        identity: IdentityClient,
        permissions: PermissionProvider | None = None,
        resolver: TransitionResolver | None = None,
    ):
        self._registry = registry
        self._gate = gate
        self._progress = progress
        self._identity = identity
        self._permission_provider = permissions
        self._resolver = resolver or TransitionResolver(registry)

        self._state: ProgressState | None = None
        self._status = FlowStatus.IN_PROGRESS
        self._permissions = PermissionSnapshot.empty()
        self._pending: CancelToken | None = None
        self._last_error: FlowError | None = None
        self._profile_id: str | None = None

    @classmethod
    def for_registry(
        cls,
        registry: StepRegistry,
        store: KeyValueStore | None,
        identity: IdentityClient,
        permissions: PermissionProvider | None = None,
        availability: AvailabilityChecker | None = None,
        timeout: float | None = None,
        key_prefix: str | None = None,
    ) -> "WorkflowController":
        """Wire a controller from a registry using its declared step rules."""
        gate = ValidationGate(registry.rules_by_key(), availability=availability, timeout=timeout)
        progress = ProgressStore(store, registry.name, registry.total_steps(), key_prefix=key_prefix)
        return cls(registry, gate, progress, identity, permissions=permissions)

    # =========================================================================
    # Read-only accessors
    # =========================================================================

    @property
    def registry(self) -> StepRegistry:
        return self._registry

    @property
    def status(self) -> FlowStatus:
        return self._status

    @property
    def busy(self) -> bool:
        return self._pending is not None

    @property
    def answers(self) -> dict[str, Any]:
        self._ensure_started()
        return dict(self._state.answers)

    @property
    def state(self) -> ProgressState:
        """A copy of the current progress state."""
        self._ensure_started()
        return self._state.copy()

    @property
    def permissions(self) -> PermissionSnapshot:
        return self._permissions

    @property
    def profile_id(self) -> str | None:
        return self._profile_id

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> Outcome:
        """
        Enter the flow: restore saved progress if any, else begin at Step(1).

        A flow whose profile was already committed is restored as Completed.
        Also captures the permission snapshot used for skip decisions.
        """
        if self._state is not None:
            return self._outcome(OutcomeStatus.NOOP)

        total = self._registry.total_steps()
        completion = self._progress.load_completion()
        if completion.value is not None:
            return self._restore_completed(completion.value.profile_id, completion.warning)

        loaded = self._progress.load()
        warnings = [w for w in (completion.warning, loaded.warning) if w]
        if loaded.value is not None:
            self._state = loaded.value
            logger.info(
                f"Resuming flow {self._registry.name!r} at step {self._state.current_step} "
                f"(completed={sorted(self._state.completed_steps)})"
            )
        else:
            self._state = ProgressState()
            logger.info(f"Starting flow {self._registry.name!r} at step 1")

        self._status = FlowStatus.READY_TO_COMPLETE if self._state.is_finished(total) else FlowStatus.IN_PROGRESS
        self.refresh_permissions()
        return self._outcome(OutcomeStatus.OK, warnings=warnings)

    def _restore_completed(self, profile_id: str, warning: FlowError | None) -> Outcome:
        total = self._registry.total_steps()
        self._state = ProgressState(current_step=total + 1)
        self._status = FlowStatus.COMPLETED
        self._profile_id = profile_id
        logger.info(f"Flow {self._registry.name!r} already completed, profile {profile_id}")

        warnings = [warning] if warning else []
        leftover = self._progress.load()
        if leftover.value is not None:
            cleared = self._progress.clear()
            warnings.extend(w for w in (leftover.warning, cleared.warning) if w)

        self.refresh_permissions()
        return self._outcome(OutcomeStatus.OK, warnings=warnings)

    def _ensure_started(self) -> None:
        if self._state is None:
            self.start()

    def refresh_permissions(self) -> PermissionSnapshot:
        """
        Re-read the host permission state.

        Skip decisions in both directions use this snapshot until the next
        refresh, which keeps advance and retreat paths symmetric.
        """
        self._permissions = PermissionSnapshot.capture(
            self._permission_provider, self._registry.permission_names()
        )
        logger.debug(f"Permission snapshot: {self._permissions!r}")
        return self._permissions

    def cancel_pending(self) -> bool:
        """Cancel an outstanding availability check. True if one was cancelled."""
        if self._pending is None:
            return False
        logger.info("Cancelling outstanding availability check")
        self._pending.cancel()
        self._pending = None
        return True

    # =========================================================================
    # Transitions
    # =========================================================================

    async def advance(self, step_answers: Mapping[str, Any] | None = None) -> Outcome:
        """
        Validate the current step with step_answers merged in and move forward.

        On validation failure nothing changes, including the answers.
        """
        self._ensure_started()
        if self._pending is not None:
            return self._busy("advance")
        if self._status is FlowStatus.COMPLETED:
            return self._reject("flow_completed", "The flow is already complete")
        if self._status is FlowStatus.READY_TO_COMPLETE:
            return self._reject("nothing_to_advance", "All steps are done; complete the flow instead")

        state = self._state
        ordinal = state.current_step
        step = self._registry.get_step(ordinal)
        candidate = merge_answers(state.answers, step_answers)

        token = CancelToken()
        self._pending = token
        try:
            result = await self._gate.validate(step.key, candidate, token)
        finally:
            if self._pending is token:
                self._pending = None

        if result.cancelled or token.cancelled or self._state is not state or state.current_step != ordinal:
            logger.info(f"Discarding stale validation for step {step.key!r}")
            return self._outcome(
                OutcomeStatus.CANCELLED,
                error=_navigation_error("stale_request", "The step changed before validation finished"),
                record=False,
            )

        if not result.valid:
            logger.info(f"Step {step.key!r} failed validation: {result.error_code}")
            return self._outcome(OutcomeStatus.INVALID, error=result.error, warnings=result.warnings)

        state.answers = candidate
        state.completed_steps.add(ordinal)
        next_ordinal = self._resolver.next_ordinal(ordinal, candidate, self._permissions)
        state.current_step = next_ordinal

        total = self._registry.total_steps()
        if next_ordinal > total:
            self._status = FlowStatus.READY_TO_COMPLETE
            logger.info(f"Step {step.key!r} done, flow ready to complete")
        else:
            logger.info(f"Step {step.key!r} done, moving to {self._registry.get_step(next_ordinal).key!r}")

        warnings = list(result.warnings) + self._persist()
        return self._outcome(OutcomeStatus.OK, warnings=warnings)

    def retreat(self) -> Outcome:
        """Move to the previous visible step. No-op at the first step."""
        self._ensure_started()
        if self._status is FlowStatus.COMPLETED:
            return self._reject("flow_completed", "The flow is already complete")

        state = self._state
        previous = self._resolver.previous_ordinal(state.current_step, state.answers, self._permissions)
        if previous is None:
            return self._outcome(OutcomeStatus.NOOP)

        self.cancel_pending()
        logger.info(f"Retreating from step {state.current_step} to {previous}")
        state.current_step = previous
        self._status = FlowStatus.IN_PROGRESS
        return self._outcome(OutcomeStatus.OK, warnings=self._persist())

    def jump_to(self, ordinal: int) -> Outcome:
        """
        Jump directly to a step.

        Allowed to revisit an earlier step, or to move to the next visible step
        when the current step is already completed. Steps hidden by their skip
        predicate are never a jump target.
        """
        self._ensure_started()
        if self._status is FlowStatus.COMPLETED:
            return self._reject("flow_completed", "The flow is already complete")

        state = self._state
        current = state.current_step
        if ordinal == current:
            return self._outcome(OutcomeStatus.NOOP)
        step = self._registry.get_step(ordinal)
        if step is None:
            return self._reject("unknown_step", f"There is no step {ordinal}")
        if step.should_skip(state.answers, self._permissions):
            return self._reject("hidden_step", f"Step {ordinal} is not shown in this flow")

        revisit = ordinal < current
        next_after_completed = current in state.completed_steps and ordinal == self._resolver.next_ordinal(
            current, state.answers, self._permissions
        )
        if not (revisit or next_after_completed):
            return self._reject("jump_not_allowed", f"Cannot jump from step {current} to step {ordinal}")

        self.cancel_pending()
        logger.info(f"Jumping from step {current} to {ordinal}")
        state.current_step = ordinal
        self._status = FlowStatus.IN_PROGRESS
        return self._outcome(OutcomeStatus.OK, warnings=self._persist())

    def complete(self) -> Outcome:
        """
        Commit the collected answers to the identity backend.

        Saved progress is cleared only after the backend accepts the profile,
        so a failed commit can be retried without re-entering anything. A
        completion marker is written first so a later start() finds the flow
        Completed.
        """
        self._ensure_started()
        if self._pending is not None:
            return self._busy("complete")
        if self._status is FlowStatus.COMPLETED:
            return self._reject("flow_completed", "The flow is already complete")
        if self._status is not FlowStatus.READY_TO_COMPLETE:
            return self._reject("not_ready", "There are steps left before the flow can be completed")

        try:
            result = self._identity.commit_profile(dict(self._state.answers))
        except Exception as e:
            logger.exception("Identity backend raised during commit")
            result = CommitResult.rejected(str(e) or "Identity backend error", code="commit_failed")

        if not result.ok:
            logger.warning(f"Profile commit rejected: {result.error}")
            error = FlowError(ErrorKind.COMMIT, result.code, result.error or "Profile was not accepted")
            return self._outcome(OutcomeStatus.COMMIT_FAILED, error=error)

        self._profile_id = result.profile_id
        self._status = FlowStatus.COMPLETED
        marked = self._progress.mark_completed(result.profile_id)
        cleared = self._progress.clear()
        logger.info(f"Flow {self._registry.name!r} completed, profile {result.profile_id}")
        warnings = [w for w in (marked.warning, cleared.warning) if w]
        return self._outcome(OutcomeStatus.OK, warnings=warnings, profile_id=result.profile_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _persist(self) -> list[FlowError]:
        saved = self._progress.save(self._state)
        return [saved.warning] if saved.warning else []

    def _busy(self, operation: str) -> Outcome:
        logger.info(f"Rejecting {operation}: another operation is in flight")
        error = FlowError(ErrorKind.BUSY, "busy", "Still checking the previous submission")
        return self._outcome(OutcomeStatus.BUSY, error=error, record=False)

    def _reject(self, code: str, message: str) -> Outcome:
        logger.info(f"Navigation rejected: {code}")
        return self._outcome(OutcomeStatus.REJECTED, error=_navigation_error(code, message))

    def _outcome(
        self,
        status: OutcomeStatus,
        error: FlowError | None = None,
        warnings: list[FlowError] | None = None,
        profile_id: str | None = None,
        record: bool = True,
    ) -> Outcome:
        if record:
            self._last_error = error
        warnings = list(warnings or [])
        view = self.view(warnings)
        if not record and error is not None:
            view.last_error = error.to_dict()
        return Outcome(status=status, view=view, error=error, warnings=warnings, profile_id=profile_id)

    def view(self, warnings: list[FlowError] | None = None) -> WorkflowView:
        """Current presentation view."""
        self._ensure_started()
        state = self._state
        total = self._registry.total_steps()
        step = self._registry.get_step(state.current_step)
        on_step = self._status is FlowStatus.IN_PROGRESS and step is not None

        is_first = on_step and self._resolver.previous_ordinal(
            state.current_step, state.answers, self._permissions
        ) is None
        is_last = on_step and self._resolver.next_ordinal(
            state.current_step, state.answers, self._permissions
        ) > total

        return WorkflowView(
            flow=self._registry.name,
            status=self._status.value,
            current_step_key=step.key if on_step else None,
            current_step_title=step.title if on_step else "",
            current_ordinal=state.current_step,
            is_first_step=is_first,
            is_last_step=is_last,
            total_steps=total,
            completed_steps=sorted(state.completed_steps),
            last_error=self._last_error.to_dict() if self._last_error else None,
            warnings=[w.to_dict() for w in (warnings or [])],
            busy=self._pending is not None,
        )
