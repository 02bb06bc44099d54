"""
Registration flow (5 steps).

Contact method, phone verification, display name, account creation and date
of birth. Phone verification is hidden when the user chose email as their
contact method.
"""

from onboarding.predicates import AnswerEquals
from onboarding.registry import Step, StepRegistry
from onboarding.rules import (
    Accepted,
    EmailFormat,
    Length,
    MinimumAge,
    OneOf,
    PhoneFormat,
    Required,
    Unique,
    When,
)

from .common import CONTACT_METHODS, PASSWORD_RULES, USERNAME_CHARSET

NAME = "registration"


def build_registry(minimum_age: int = 13, maximum_age: int = 120) -> StepRegistry:
    steps = [
        Step(1, "contact_method", "Contact Method", rules=(
            Required("contact_method", "Please select a contact method"),
            OneOf("contact_method", CONTACT_METHODS),
            Required("contact_value", "Please enter your contact information"),
            When("contact_method", "email", (
                EmailFormat("contact_value"),
                Unique("contact_value", "An account with this email already exists"),
            )),
            When("contact_method", "phone", (
                PhoneFormat("contact_value"),
                Required("country_code", "Please select a country for your phone number"),
            )),
        )),
        Step(2, "phone_verification", "Phone Verification", skip=AnswerEquals("contact_method", "email"), rules=(
            Accepted("phone_verified", "Please verify your phone number"),
        )),
        Step(3, "display_name", "Display Name", rules=(
            Required("display_name", "Please enter your display name"),
            Length("display_name", 2, 50, label="Display name"),
        )),
        Step(4, "account_creation", "Account Creation", rules=(
            Required("username", "Please enter a username"),
            Length("username", 3, 20, label="Username"),
            USERNAME_CHARSET,
            Unique("username", "This username is already taken"),
            *PASSWORD_RULES,
        )),
        Step(5, "date_of_birth", "Date of Birth", rules=(
            Required("date_of_birth", "Please enter your date of birth"),
            MinimumAge("date_of_birth", minimum_age, maximum_age),
        )),
    ]
    return StepRegistry(NAME, steps)
