"""
Validation Gate.

Evaluates a step's declarative rules over the collected answers. Local rules
run synchronously and in declaration order; the first failure wins. Fields
declared Unique are then checked against a remote availability service with a
bounded timeout. That lookup is the only point where validation suspends.

A lookup that fails or times out does not block the user: the value is assumed
available and an AVAILABILITY warning is attached to the result.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from .answers import is_blank
from .errors import ErrorKind, FlowError
from .rules import Rule, Unique

logger = logging.getLogger(__name__)


@runtime_checkable
class AvailabilityChecker(Protocol):
    """Remote uniqueness lookup (username, email)."""

    async def is_available(self, field: str, value: str) -> bool:
        ...


class CancelToken:
    """
    Cancellation handle for one outstanding availability request.

    The controller owns the token; cancelling it cancels the bound lookup task
    so a late answer is never applied to a step the user has left.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._task: asyncio.Future | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def bind(self, task: asyncio.Future) -> None:
        self._task = task
        if self._cancelled:
            task.cancel()

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


@dataclass
class ValidationResult:
    """Outcome of validating one step."""
    valid: bool
    error: FlowError | None = None
    warnings: list[FlowError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error else None

    @property
    def message(self) -> str | None:
        return self.error.message if self.error else None

    @classmethod
    def ok(cls, warnings: list[FlowError] | None = None) -> "ValidationResult":
        return cls(valid=True, warnings=list(warnings or []))

    @classmethod
    def failed(cls, error: FlowError, warnings: list[FlowError] | None = None) -> "ValidationResult":
        return cls(valid=False, error=error, warnings=list(warnings or []))

    @classmethod
    def discarded(cls) -> "ValidationResult":
        return cls(valid=False, cancelled=True)


class ValidationGate:
    """Per-step rule evaluator. Never mutates the answers it is given."""

    def __init__(
        self,
        rules: Mapping[str, Sequence[Rule]],
        availability: AvailabilityChecker | None = None,
        timeout: float | None = None,
    ):
        if timeout is None:
            from .config import settings
            timeout = settings.availability_timeout_seconds
        self._rules = {key: tuple(step_rules) for key, step_rules in rules.items()}
        self._availability = availability
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    def rules_for(self, step_key: str) -> tuple[Rule, ...]:
        return self._rules.get(step_key, ())

    def remote_rules(self, step_key: str, answers: Mapping[str, Any]) -> tuple[Unique, ...]:
        """Uniqueness checks that apply to the step for these answers."""
        return tuple(r for rule in self.rules_for(step_key) for r in rule.remote_rules(answers))

    def check(self, step_key: str, answers: Mapping[str, Any]) -> ValidationResult:
        """Run the local (synchronous) rules only."""
        if step_key not in self._rules:
            logger.debug(f"No rules registered for step {step_key!r}")
        for rule in self.rules_for(step_key):
            error = rule.evaluate(answers)
            if error is not None:
                return ValidationResult.failed(error)
        return ValidationResult.ok()

    async def validate(
        self,
        step_key: str,
        answers: Mapping[str, Any],
        token: CancelToken | None = None,
    ) -> ValidationResult:
        """Local rules, then remote uniqueness checks for Unique fields."""
        result = self.check(step_key, answers)
        if not result.valid:
            return result

        warnings: list[FlowError] = []
        for rule in self.remote_rules(step_key, answers):
            value = answers.get(rule.field)
            if is_blank(value):
                continue
            if token is not None and token.cancelled:
                return ValidationResult.discarded()

            available, warning = await self._lookup(rule, str(value).strip(), token)
            if token is not None and token.cancelled:
                logger.info(f"Discarding availability result for {rule.field!r}: request cancelled")
                return ValidationResult.discarded()
            if warning is not None:
                warnings.append(warning)
            if not available:
                return ValidationResult.failed(rule.taken(), warnings)

        return ValidationResult.ok(warnings)

    async def _lookup(
        self,
        rule: Unique,
        value: str,
        token: CancelToken | None,
    ) -> tuple[bool, FlowError | None]:
        if self._availability is None:
            logger.warning(f"No availability service configured, assuming {rule.field!r} is available")
            return True, FlowError(
                ErrorKind.AVAILABILITY,
                "availability_unchecked",
                "Availability could not be checked",
                rule.field,
            )

        task = asyncio.ensure_future(self._availability.is_available(rule.field, value))
        if token is not None:
            token.bind(task)

        try:
            available = await asyncio.wait_for(task, timeout=self._timeout)
            return bool(available), None
        except asyncio.CancelledError:
            if token is not None and token.cancelled:
                return True, None
            raise
        except asyncio.TimeoutError:
            logger.warning(
                f"Availability check for {rule.field!r} timed out after {self._timeout}s, assuming available"
            )
            return True, FlowError(
                ErrorKind.AVAILABILITY,
                "availability_timeout",
                "Availability could not be confirmed in time",
                rule.field,
            )
        except Exception as e:
            logger.warning(f"Availability check for {rule.field!r} failed, assuming available: {e}")
            return True, FlowError(
                ErrorKind.AVAILABILITY,
                "availability_failed",
                "Availability could not be checked",
                rule.field,
            )
