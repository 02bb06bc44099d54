"""
Skip predicates.

A skip predicate decides, from collected answers and the permission snapshot,
whether a step is hidden. Predicates are small frozen records so registries stay
declarative and the resolver never branches on step names.

Fail-safe default: when the context a predicate needs is missing (unknown
permission, no birth date yet) the predicate answers False and the step shows.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Mapping

from .answers import age_from_answers
from .permissions import PermissionSnapshot

SkipFn = Callable[[Mapping[str, Any], PermissionSnapshot], bool]


@dataclass(frozen=True)
class PermissionGranted:
    """Skip when the host already granted the permission this step asks for."""
    permission: str

    @property
    def permissions(self) -> tuple[str, ...]:
        return (self.permission,)

    def __call__(self, answers: Mapping[str, Any], permissions: PermissionSnapshot) -> bool:
        return permissions.is_granted(self.permission)


@dataclass(frozen=True)
class AgeBelow:
    """Skip when the age computed from the birth date is below the threshold."""
    threshold: int
    field: str = "date_of_birth"
    today: Callable[[], date] = date.today

    @property
    def permissions(self) -> tuple[str, ...]:
        return ()

    def __call__(self, answers: Mapping[str, Any], permissions: PermissionSnapshot) -> bool:
        age = age_from_answers(answers, self.field, self.today())
        return age is not None and age < self.threshold


@dataclass(frozen=True)
class AnswerEquals:
    """Skip when a collected answer equals a given value."""
    field: str
    value: Any

    @property
    def permissions(self) -> tuple[str, ...]:
        return ()

    def __call__(self, answers: Mapping[str, Any], permissions: PermissionSnapshot) -> bool:
        return field_in(answers, self.field) and answers[self.field] == self.value


@dataclass(frozen=True)
class AnyOf:
    """Skip when any member predicate says skip."""
    predicates: tuple[SkipFn, ...]

    @property
    def permissions(self) -> tuple[str, ...]:
        names: list[str] = []
        for predicate in self.predicates:
            for name in getattr(predicate, "permissions", ()):
                if name not in names:
                    names.append(name)
        return tuple(names)

    def __call__(self, answers: Mapping[str, Any], permissions: PermissionSnapshot) -> bool:
        return any(predicate(answers, permissions) for predicate in self.predicates)


def any_of(*predicates: SkipFn) -> AnyOf:
    return AnyOf(tuple(predicates))


def field_in(answers: Mapping[str, Any], name: str) -> bool:
    return name in answers and answers[name] is not None
