"""
Long-form onboarding flow (16 steps).

Age gate, account basics, terms, device permissions, personalisation,
contacts and phone verification. Permission steps are hidden when the host
already granted the permission; phone steps are hidden for users under the
privacy age threshold.
"""

import re

from onboarding.predicates import AgeBelow, PermissionGranted
from onboarding.registry import Step, StepRegistry
from onboarding.rules import (
    Accepted,
    EmailFormat,
    Length,
    Matches,
    MinimumAge,
    MinItems,
    NotReserved,
    OneOf,
    PhoneFormat,
    Required,
    Unique,
)

from .common import (
    PASSWORD_RULES,
    RESERVED_USERNAMES,
    USERNAME_CHARSET,
    THEMES,
)

NAME = "long_form"

VERIFICATION_CODE = re.compile(r"^\d{6}$")


def build_registry(
    minimum_age: int = 13,
    maximum_age: int = 120,
    privacy_age_threshold: int = 16,
) -> StepRegistry:
    """Build the long-form registry with the given age policy."""
    under_privacy_age = AgeBelow(privacy_age_threshold)

    steps = [
        Step(1, "age_gate", "Age Verification", rules=(
            Required("date_of_birth", "Please enter your date of birth"),
            MinimumAge("date_of_birth", minimum_age, maximum_age),
        )),
        Step(2, "username", "Choose Username", rules=(
            Required("username", "Username is required"),
            Length("username", 3, 20, label="Username"),
            USERNAME_CHARSET,
            NotReserved("username", RESERVED_USERNAMES, "This username is not available"),
            Unique("username", "This username is already taken"),
        )),
        Step(3, "email", "Email Address", rules=(
            Required("email", "Email is required"),
            EmailFormat("email"),
            Unique("email", "An account with this email already exists"),
        )),
        Step(4, "password", "Create Password", rules=PASSWORD_RULES),
        Step(5, "terms", "Terms & Privacy", rules=(
            Accepted("terms_accepted", "Please accept the terms to continue"),
        )),
        Step(6, "permissions_intro", "Permissions"),
        Step(7, "notifications_permission", "Notifications", skip=PermissionGranted("notifications")),
        Step(8, "avatar_picker", "Profile Picture"),
        Step(9, "theme_choice", "Choose Theme", rules=(
            OneOf("theme", THEMES),
        )),
        Step(10, "interests", "Your Interests", rules=(
            MinItems("interests", 1, "Select at least one interest"),
        )),
        Step(11, "contacts_intro", "Find Friends"),
        Step(12, "contacts_permission", "Contacts", skip=PermissionGranted("contacts")),
        Step(13, "phone_intro", "Phone Number", skip=under_privacy_age, rules=(
            Required("phone_number", "Phone number is required"),
            PhoneFormat("phone_number"),
        )),
        Step(14, "phone_verification", "Verify Phone", skip=under_privacy_age, rules=(
            Required("verification_code", "Enter the code we sent you"),
            Matches("verification_code", VERIFICATION_CODE, "invalid_code", "The code has 6 digits"),
        )),
        Step(15, "success", "Welcome!"),
        Step(16, "home_handoff", ""),
    ]
    return StepRegistry(NAME, steps)
