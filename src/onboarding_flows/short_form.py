"""
Short-form onboarding flow (5 steps).

Contact method (email and/or phone), username, password, optional profile,
finish. No step is ever skipped.
"""

from onboarding.registry import Step, StepRegistry
from onboarding.rules import (
    AtLeastOneOf,
    EmailFormat,
    Length,
    NotReserved,
    PhoneFormat,
    Required,
    Unique,
)

from .common import PASSWORD_RULES, RESERVED_USERNAMES, USERNAME_CHARSET

NAME = "short_form"


def build_registry() -> StepRegistry:
    steps = [
        Step(1, "contact_method", "Contact Method", rules=(
            AtLeastOneOf(("email", "phone_number"), "Please provide at least one contact method"),
            EmailFormat("email"),
            PhoneFormat("phone_number"),
        )),
        Step(2, "username", "Choose Username", rules=(
            Required("username", "Username is required"),
            Length("username", 3, 20, label="Username"),
            USERNAME_CHARSET,
            NotReserved("username", RESERVED_USERNAMES, "This username is not available"),
            Unique("username", "This username is already taken"),
        )),
        Step(3, "password", "Create Password", rules=PASSWORD_RULES),
        Step(4, "profile", "Your Profile", rules=(
            Length("display_name", max_length=50, label="Display name"),
        )),
        Step(5, "finish", "All Set"),
    ]
    return StepRegistry(NAME, steps)
