"""
Step Resolver - maps an event state to the next question to ask.

Pure: the same state always resolves to the same step. The audience skip
rule is looked up, never owned.
"""
from typing import Callable, Optional

from ..models.catalog import audience_required as catalog_audience_required
from ..models.event_state import EventState, StepId

AudienceRule = Callable[[Optional[str]], bool]

# Resolver order, summary excluded
STEP_ORDER = (
    StepId.EVENT_TYPE,
    StepId.EVENT_NAME,
    StepId.PARTICIPANTS,
    StepId.FOR_WHOM,
    StepId.LOCATION_CITY,
    StepId.VENUE_PREFERENCE,
    StepId.PRIVACY_SELECTION,
    StepId.DATE_SELECTION,
)


def is_step_met(step: StepId, state: EventState,
                audience_required: AudienceRule = catalog_audience_required) -> bool:
    """Whether the condition guarding a step is already satisfied."""
    if step == StepId.EVENT_TYPE:
        return bool(state.event_type)
    if step == StepId.EVENT_NAME:
        return bool(state.title)
    if step == StepId.PARTICIPANTS:
        return bool(state.participants)
    if step == StepId.FOR_WHOM:
        return bool(state.for_whom) or not audience_required(state.event_type)
    if step == StepId.LOCATION_CITY:
        return bool(state.destination)
    if step == StepId.VENUE_PREFERENCE:
        return state.has_venue()
    if step == StepId.PRIVACY_SELECTION:
        return state.privacy is not None
    if step == StepId.DATE_SELECTION:
        return state.has_date()
    return True


def resolve_step(state: EventState, audience_required: AudienceRule = catalog_audience_required) -> StepId:
    """First unmet condition wins; summary when everything is known."""
    for step in STEP_ORDER:
        if not is_step_met(step, state, audience_required):
            return step
    return StepId.SUMMARY


def missing_steps(state: EventState, audience_required: AudienceRule = catalog_audience_required) -> list[StepId]:
    """Every step still unmet, in the order they will be asked."""
    return [step for step in STEP_ORDER if not is_step_met(step, state, audience_required)]


def answered_steps(state: EventState, audience_required: AudienceRule = catalog_audience_required) -> list[StepId]:
    """Steps the user actually answered; a skipped audience question does not count."""
    answered = []
    for step in STEP_ORDER:
        if step == StepId.FOR_WHOM and not audience_required(state.event_type):
            continue
        if is_step_met(step, state, audience_required):
            answered.append(step)
    return answered
