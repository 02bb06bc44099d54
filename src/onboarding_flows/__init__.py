"""
Bundled onboarding flows.

Each flow is a StepRegistry built from shared predicates and rules; the
engine in `onboarding` runs any of them unchanged.

Flows:
- long_form: 16-step onboarding with permission and age-gated steps
- short_form: 5-step onboarding with no skipped steps
- registration: 5-step account registration, phone verification only for phone contacts
"""

from typing import Callable

from onboarding.config import OnboardingSettings, get_settings
from onboarding.registry import StepRegistry

from . import long_form, registration, short_form
from .services import InMemoryIdentityBackend, StaticAvailabilityChecker

FLOW_NAMES = (long_form.NAME, short_form.NAME, registration.NAME)


def get_registry(name: str, config: OnboardingSettings | None = None) -> StepRegistry:
    """Build the registry for a bundled flow using the configured age policy."""
    config = config or get_settings()
    builders: dict[str, Callable[[], StepRegistry]] = {
        long_form.NAME: lambda: long_form.build_registry(
            minimum_age=config.minimum_age,
            maximum_age=config.maximum_age,
            privacy_age_threshold=config.privacy_age_threshold,
        ),
        short_form.NAME: short_form.build_registry,
        registration.NAME: lambda: registration.build_registry(
            minimum_age=config.minimum_age,
            maximum_age=config.maximum_age,
        ),
    }
    if name not in builders:
        raise KeyError(f"Unknown flow {name!r}. Available: {', '.join(FLOW_NAMES)}")
    return builders[name]()


__all__ = [
    "FLOW_NAMES",
    "get_registry",
    "InMemoryIdentityBackend",
    "StaticAvailabilityChecker",
]
