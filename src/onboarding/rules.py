"""
Declarative validation rules.

Each rule checks one constraint over the collected answers and returns a
FlowError on failure or None on success. Format-style rules only look at a
field once it holds a value; presence is the job of Required and AtLeastOneOf.

Uniqueness is declared with Unique but checked remotely by the ValidationGate.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Mapping

from .answers import compute_age, is_blank, parse_birth_date
from .errors import ErrorKind, FlowError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
LETTER_AND_DIGIT_PATTERN = re.compile(r"^(?=.*[a-zA-Z])(?=.*\d)")
NON_DIGITS = re.compile(r"\D")


def _fail(field: str | None, code: str, message: str) -> FlowError:
    return FlowError(ErrorKind.VALIDATION, code, message, field)


class Rule(ABC):
    """Base class for a single validation rule."""

    field: str | None

    @abstractmethod
    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        """Return the first violation for these answers, or None."""

    def remote_rules(self, answers: Mapping[str, Any]) -> tuple["Unique", ...]:
        """Uniqueness checks this rule contributes for the given answers."""
        return ()


@dataclass(frozen=True)
class Required(Rule):
    field: str
    message: str = "This field is required"

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        if is_blank(answers.get(self.field)):
            return _fail(self.field, "required", self.message)
        return None


@dataclass(frozen=True)
class EmailFormat(Rule):
    field: str
    message: str = "Please enter a valid email address"

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        value = answers.get(self.field)
        if is_blank(value):
            return None
        if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
            return _fail(self.field, "invalid_email", self.message)
        return None


@dataclass(frozen=True)
class PhoneFormat(Rule):
    field: str
    min_digits: int = 10
    max_digits: int = 15

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        value = answers.get(self.field)
        if is_blank(value):
            return None
        digits = NON_DIGITS.sub("", str(value))
        if len(digits) < self.min_digits:
            return _fail(self.field, "phone_too_short", f"Phone number must be at least {self.min_digits} digits")
        if len(digits) > self.max_digits:
            return _fail(self.field, "phone_too_long", f"Phone number must be at most {self.max_digits} digits")
        return None


@dataclass(frozen=True)
class Length(Rule):
    field: str
    min_length: int | None = None
    max_length: int | None = None
    label: str = "Value"

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        value = answers.get(self.field)
        if is_blank(value):
            return None
        size = len(str(value))
        if self.min_length is not None and size < self.min_length:
            return _fail(self.field, "too_short", f"{self.label} must be at least {self.min_length} characters")
        if self.max_length is not None and size > self.max_length:
            return _fail(self.field, "too_long", f"{self.label} must be at most {self.max_length} characters")
        return None


@dataclass(frozen=True)
class Matches(Rule):
    field: str
    pattern: re.Pattern
    code: str = "invalid_format"
    message: str = "Invalid format"

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        value = answers.get(self.field)
        if is_blank(value):
            return None
        if not self.pattern.search(str(value)):
            return _fail(self.field, self.code, self.message)
        return None


@dataclass(frozen=True)
class AtLeastOneOf(Rule):
    fields: tuple[str, ...]
    message: str = "Please provide at least one contact method"

    @property
    def field(self) -> str | None:
        return self.fields[0] if self.fields else None

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        if all(is_blank(answers.get(name)) for name in self.fields):
            return _fail(self.field, "missing_one_of", self.message)
        return None


@dataclass(frozen=True)
class MinimumAge(Rule):
    """Age computed from a birth date must fall within [minimum, maximum]."""
    field: str
    minimum: int
    maximum: int | None = None
    today: Callable[[], date] = date.today

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        value = answers.get(self.field)
        if is_blank(value):
            return None
        birth_date = parse_birth_date(value)
        if birth_date is None:
            return _fail(self.field, "invalid_birth_date", "Please enter a valid date of birth")
        age = compute_age(birth_date, self.today())
        if age < self.minimum:
            return _fail(
                self.field,
                "underage",
                f"You must be at least {self.minimum} years old to create an account",
            )
        if self.maximum is not None and age > self.maximum:
            return _fail(self.field, "invalid_birth_date", "Please enter a valid date of birth")
        return None


@dataclass(frozen=True)
class NotReserved(Rule):
    field: str
    reserved: frozenset[str]
    message: str = "This value is not available"

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        value = answers.get(self.field)
        if is_blank(value):
            return None
        if str(value).strip().lower() in self.reserved:
            return _fail(self.field, "reserved", self.message)
        return None


@dataclass(frozen=True)
class Accepted(Rule):
    field: str
    message: str = "Please accept to continue"

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        if answers.get(self.field) is not True:
            return _fail(self.field, "not_accepted", self.message)
        return None


@dataclass(frozen=True)
class OneOf(Rule):
    field: str
    choices: frozenset[str]

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        value = answers.get(self.field)
        if is_blank(value):
            return None
        if value not in self.choices:
            options = ", ".join(sorted(self.choices))
            return _fail(self.field, "invalid_choice", f"Choose one of: {options}")
        return None


@dataclass(frozen=True)
class MinItems(Rule):
    field: str
    minimum: int = 1
    message: str = ""

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        value = answers.get(self.field) or []
        count = len(value) if isinstance(value, (list, tuple, set)) else 0
        if count < self.minimum:
            message = self.message or f"Select at least {self.minimum}"
            return _fail(self.field, "too_few", message)
        return None


@dataclass(frozen=True)
class Unique(Rule):
    """Value must not already be taken. Checked by the gate's availability service."""
    field: str
    message: str = "This value is already taken"

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        return None

    def remote_rules(self, answers: Mapping[str, Any]) -> tuple["Unique", ...]:
        return (self,)

    def taken(self) -> FlowError:
        return _fail(self.field, "taken", self.message)


@dataclass(frozen=True)
class When(Rule):
    """Apply nested rules only while another answer has a given value."""
    field: str
    equals: Any
    rules: tuple[Rule, ...]

    def evaluate(self, answers: Mapping[str, Any]) -> FlowError | None:
        if answers.get(self.field) != self.equals:
            return None
        for rule in self.rules:
            error = rule.evaluate(answers)
            if error is not None:
                return error
        return None

    def remote_rules(self, answers: Mapping[str, Any]) -> tuple["Unique", ...]:
        if answers.get(self.field) != self.equals:
            return ()
        return tuple(r for rule in self.rules for r in rule.remote_rules(answers))
