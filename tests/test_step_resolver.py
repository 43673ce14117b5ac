"""Tests for the step resolver."""
import itertools
from datetime import datetime, timedelta

import pytest

from planora.models.catalog import get_catalog
from planora.models.event_state import EventState, StepId
from planora.services.step_resolver import missing_steps, resolve_step


def complete_birthday() -> EventState:
    return EventState(
        event_type="birthday",
        title="30th birthday for Michal",
        participants=20,
        destination="Tel Aviv",
        venue_preference="restaurant",
        privacy="private",
        event_date=datetime.now() + timedelta(days=30),
    )


class TestResolveStep:
    """Test first-unmet-condition-wins ordering."""

    def test_empty_state_asks_type(self):
        """An empty state asks for the type."""
        assert resolve_step(EventState()) == StepId.EVENT_TYPE

    def test_birthday_example_reaches_summary(self):
        """The birthday walkthrough reaches the summary."""
        assert resolve_step(complete_birthday()) == StepId.SUMMARY

    def test_referential_transparency(self):
        """Same state, same step."""
        state = EventState(event_type="party", title="Housewarming")
        assert resolve_step(state) == resolve_step(state)

    @pytest.mark.parametrize("field,expected", [
        ("event_type", StepId.EVENT_TYPE),
        ("title", StepId.EVENT_NAME),
        ("participants", StepId.PARTICIPANTS),
        ("destination", StepId.LOCATION_CITY),
        ("venue_preference", StepId.VENUE_PREFERENCE),
        ("privacy", StepId.PRIVACY_SELECTION),
        ("event_date", StepId.DATE_SELECTION),
    ])
    def test_each_missing_field(self, field, expected):
        """Each missing field leads to its step."""
        state = complete_birthday().model_copy(update={field: None})
        assert resolve_step(state) == expected

    def test_venue_alternatives(self):
        """Venue, preference or poll all satisfy the venue step."""
        base = complete_birthday().model_copy(update={"venue_preference": None})

        assert resolve_step(base.model_copy(update={"venue": "Cafe Noir"})) == StepId.SUMMARY
        assert resolve_step(base.model_copy(update={"location_poll": True})) == StepId.SUMMARY

    def test_date_poll_satisfies_date(self):
        """A date poll satisfies the date step."""
        state = complete_birthday().model_copy(update={"event_date": None, "date_poll": True})
        assert resolve_step(state) == StepId.SUMMARY

    def test_audience_asked_when_required(self):
        """The audience is asked only when required."""
        state = EventState(event_type="party", title="Housewarming", participants=15)
        assert resolve_step(state) == StepId.FOR_WHOM

    def test_several_fields_at_once_jump_ahead(self):
        """Several fields at once skip their steps."""
        state = EventState(event_type="wedding", title="Dana & Yoni", participants=250, destination="Haifa")
        assert resolve_step(state) == StepId.VENUE_PREFERENCE

    def test_audience_rule_is_injected(self):
        """The audience rule can be injected."""
        state = EventState(event_type="wedding", title="Dana & Yoni", participants=250)

        assert resolve_step(state, audience_required=lambda t: True) == StepId.FOR_WHOM
        assert resolve_step(state, audience_required=lambda t: False) == StepId.LOCATION_CITY

    def test_missing_steps_in_order(self):
        """Missing steps come in flow order."""
        state = EventState(event_type="wedding", title="Dana & Yoni")
        assert missing_steps(state) == [
            StepId.PARTICIPANTS,
            StepId.LOCATION_CITY,
            StepId.VENUE_PREFERENCE,
            StepId.PRIVACY_SELECTION,
            StepId.DATE_SELECTION,
        ]


class TestAudienceSkip:
    """Domain types that skip the audience question never get it."""

    skipping = [p.key for p in get_catalog().profiles if not p.audience_required]

    def test_catalog_has_skipping_types(self):
        """The catalog has types that skip the audience."""
        assert "wedding" in self.skipping
        assert "work_event" in self.skipping

    @pytest.mark.parametrize("event_type", skipping)
    def test_never_for_whom(self, event_type):
        """Types without an audience never ask for it."""
        values = {
            "title": [None, "Name"],
            "participants": [None, 10],
            "destination": [None, "Haifa"],
            "venue_preference": [None, "hall"],
            "privacy": [None, "public"],
            "date_poll": [False, True],
        }
        for combo in itertools.product(*values.values()):
            state = EventState(event_type=event_type, **dict(zip(values, combo)))
            assert resolve_step(state) != StepId.FOR_WHOM
