"""Tests for the registration flow."""

import asyncio

import pytest

from onboarding.controller import FlowStatus, OutcomeStatus, WorkflowController
from onboarding_flows import FLOW_NAMES, get_registry, registration


def run(coro):
    return asyncio.run(coro)


EMAIL_CONTACT = {"contact_method": "email", "contact_value": "new@example.com"}
PHONE_CONTACT = {"contact_method": "phone", "contact_value": "+1 555 123 4567", "country_code": "US"}


@pytest.fixture
def controller(store, identity, availability):
    c = WorkflowController.for_registry(
        registration.build_registry(),
        store,
        identity,
        availability=availability,
        timeout=0.5,
        key_prefix="@test",
    )
    c.start()
    return c


class TestContactMethod:
    """First step branches on the chosen contact method."""

    def test_email_skips_phone_verification(self, controller):
        outcome = run(controller.advance(EMAIL_CONTACT))
        assert outcome.view.current_step_key == "display_name"

    def test_phone_requires_verification(self, controller):
        outcome = run(controller.advance(PHONE_CONTACT))
        assert outcome.view.current_step_key == "phone_verification"

    def test_phone_needs_country(self, controller):
        answers = {k: v for k, v in PHONE_CONTACT.items() if k != "country_code"}
        outcome = run(controller.advance(answers))
        assert outcome.error.code == "required"
        assert outcome.error.field == "country_code"

    def test_phone_value_checked_as_phone(self, controller):
        outcome = run(controller.advance({"contact_method": "phone", "contact_value": "new@example.com"}))
        assert outcome.error.code == "phone_too_short"

    def test_taken_email(self, controller, availability):
        outcome = run(controller.advance({"contact_method": "email", "contact_value": "admin@test.com"}))
        assert outcome.error.code == "taken"
        assert ("contact_value", "admin@test.com") in availability.calls

    def test_phone_not_looked_up(self, controller, availability):
        run(controller.advance(PHONE_CONTACT))
        assert availability.calls == []

    def test_unknown_method(self, controller):
        outcome = run(controller.advance({"contact_method": "fax", "contact_value": "123"}))
        assert outcome.error.code == "invalid_choice"


class TestJumpTo:
    """Forward jumps follow the visible path."""

    def test_forward_jump_skips_hidden_verification(self, controller):
        run(controller.advance(EMAIL_CONTACT))
        assert controller.jump_to(1).status is OutcomeStatus.OK

        hidden = controller.jump_to(2)
        assert hidden.status is OutcomeStatus.REJECTED
        assert hidden.error.code == "hidden_step"

        outcome = controller.jump_to(3)
        assert outcome.status is OutcomeStatus.OK
        assert outcome.view.current_step_key == "display_name"

    def test_forward_jump_limited_to_next_visible_step(self, controller):
        run(controller.advance(EMAIL_CONTACT))
        controller.jump_to(1)
        outcome = controller.jump_to(4)
        assert outcome.error.code == "jump_not_allowed"


class TestFullRegistration:
    """Walking the registration flow to commit."""

    def test_email_registration(self, controller, identity, born):
        steps = [
            EMAIL_CONTACT,
            {"display_name": "Sam Kim"},
            {"username": "sam_k", "password": "secret123"},
            {"date_of_birth": born(25)},
        ]
        for answers in steps:
            assert run(controller.advance(answers)).status is OutcomeStatus.OK

        assert controller.status is FlowStatus.READY_TO_COMPLETE
        assert controller.state.completed_steps == {1, 3, 4, 5}

        outcome = controller.complete()
        assert outcome.ok
        assert identity.profiles[outcome.profile_id]["display_name"] == "Sam Kim"

    def test_retreat_from_display_name_skips_verification(self, controller):
        run(controller.advance(EMAIL_CONTACT))
        outcome = controller.retreat()
        assert outcome.view.current_step_key == "contact_method"

    def test_too_old_birth_date(self, controller, born):
        for answers in (EMAIL_CONTACT, {"display_name": "Sam"}, {"username": "sam_k", "password": "secret123"}):
            run(controller.advance(answers))
        outcome = run(controller.advance({"date_of_birth": born(121)}))
        assert outcome.error.code == "invalid_birth_date"


class TestFlowCatalog:
    """Bundled flow lookup."""

    @pytest.mark.parametrize("name,total", [("long_form", 16), ("short_form", 5), ("registration", 5)])
    def test_known_flows(self, name, total):
        registry = get_registry(name)
        assert registry.name == name
        assert registry.total_steps() == total

    def test_catalog_lists_every_flow(self):
        assert set(FLOW_NAMES) == {"long_form", "short_form", "registration"}

    def test_unknown_flow(self):
        with pytest.raises(KeyError):
            get_registry("nope")
