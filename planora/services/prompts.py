"""
Step prompts - one renderer per step, fed by the domain catalog.

The flow controller always resolves the step first and then renders it from
this table; there is no separate scripted path for the opening question.
"""
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..models.catalog import DomainProfile, OptionSpec, get_catalog
from ..models.event_state import EventState, StepId
from ..models.session import Action


@dataclass
class Prompt:
    text: str
    actions: list[Action] = field(default_factory=list)


SKIP_ACTION = Action(id="skip", label="Skip", icon="⏭️")
BACK_ACTION = Action(id="back", label="Back", icon="↩️")

SUMMARY_ACTIONS = [
    Action(id="edit_title", label="Change name", icon="✏️"),
    Action(id="edit_date", label="Change date", icon="📅"),
    Action(id="edit_location", label="Change location", icon="📍"),
    Action(id="edit_participants", label="Change guest count", icon="👥"),
    Action(id="regenerate_plan", label="New plan", icon="🔄"),
    Action(id="restart", label="Start over", icon="🆕"),
]

WELCOME_TEXT = (
    "👋 Hi! I'm here to help you create an event.\n\n"
    "Tell me about it in your own words, for example: "
    "\"A birthday for 20 friends in Tel Aviv next Friday\"."
)


def _to_actions(options: list[OptionSpec]) -> list[Action]:
    return [Action(id=o.id, label=o.label, icon=o.icon) for o in options]


def _event_type(state: EventState, profile: DomainProfile) -> Prompt:
    return Prompt(
        text="What kind of event are we planning? 🎉",
        actions=_to_actions(get_catalog().type_options()),
    )


def _event_name(state: EventState, profile: DomainProfile) -> Prompt:
    return Prompt(text=profile.name_prompt, actions=[SKIP_ACTION])


def _participants(state: EventState, profile: DomainProfile) -> Prompt:
    text = profile.participants_prompt
    typical = profile.typical_participants
    if typical.get("min") and typical.get("max"):
        text += f" (usually {typical['min']}-{typical['max']})"
    return Prompt(text=text)


def _for_whom(state: EventState, profile: DomainProfile) -> Prompt:
    return Prompt(
        text="Who is the event for?",
        actions=_to_actions(profile.audience_options) + [SKIP_ACTION],
    )


def _location_city(state: EventState, profile: DomainProfile) -> Prompt:
    return Prompt(text="In which city or area will it take place? 📍")


def _venue_preference(state: EventState, profile: DomainProfile) -> Prompt:
    where = f" in {state.destination}" if state.destination else ""
    actions = _to_actions(profile.venue_options)
    actions.append(Action(id="manual_location", label="I have a place", icon="✍️"))
    return Prompt(text=f"What kind of place are you looking for{where}?", actions=actions)


def _privacy(state: EventState, profile: DomainProfile) -> Prompt:
    return Prompt(
        text="Should the event be private (invite only) or public?",
        actions=[
            Action(id="privacy_private", label="Private", icon="🔒"),
            Action(id="privacy_public", label="Public", icon="🌍"),
        ],
    )


def _date_selection(state: EventState, profile: DomainProfile) -> Prompt:
    return Prompt(
        text="When is it happening? 📅 Type a date (e.g. 2026-12-24 at 19:00) or let the guests vote.",
        actions=[
            Action(id="select_date", label="Pick a date", icon="📅"),
            Action(id="create_date_poll", label="Date poll", icon="🗳️"),
            SKIP_ACTION,
        ],
    )


def _summary(state: EventState, profile: DomainProfile) -> Prompt:
    return Prompt(text=format_state_summary(state, profile), actions=list(SUMMARY_ACTIONS))


StepRenderer = Callable[[EventState, DomainProfile], Prompt]

STEP_PROMPTS: dict[StepId, StepRenderer] = {
    StepId.EVENT_TYPE: _event_type,
    StepId.EVENT_NAME: _event_name,
    StepId.PARTICIPANTS: _participants,
    StepId.FOR_WHOM: _for_whom,
    StepId.LOCATION_CITY: _location_city,
    StepId.VENUE_PREFERENCE: _venue_preference,
    StepId.PRIVACY_SELECTION: _privacy,
    StepId.DATE_SELECTION: _date_selection,
    StepId.SUMMARY: _summary,
}


def render_prompt(step: StepId, state: EventState, profile: Optional[DomainProfile] = None) -> Prompt:
    """Render the question for a step."""
    profile = profile or get_catalog().lookup(state.event_type)
    prompt = STEP_PROMPTS[step](state, profile)
    if step not in (StepId.EVENT_TYPE, StepId.SUMMARY):
        prompt.actions.append(BACK_ACTION)
    return prompt


def format_state_summary(state: EventState, profile: Optional[DomainProfile] = None) -> str:
    """Readable summary of everything collected."""
    profile = profile or get_catalog().lookup(state.event_type)
    lines = ["📋 **Your event:**"]

    type_label = state.event_type if profile.key == "other" and state.event_type else profile.label
    lines.append(f"- 🎉 Type: {type_label}")
    if state.title:
        lines.append(f"- ✏️ Name: {state.title}")
    if state.participants:
        lines.append(f"- 👥 Guests: {state.participants}")
    if state.for_whom:
        lines.append(f"- 🎯 For: {state.for_whom}")

    where = ", ".join(p for p in (state.venue, state.destination) if p)
    if state.location_poll:
        where += " (venue by poll)"
    elif state.venue_preference and not state.venue:
        where += f" ({state.venue_preference})"
    if where:
        lines.append(f"- 📍 Where: {where.strip()}")

    if state.privacy:
        lines.append(f"- 🔒 Privacy: {state.privacy.value}")
    if state.event_date:
        lines.append(f"- 📅 When: {state.event_date.strftime('%Y-%m-%d %H:%M')}")
    elif state.date_poll:
        lines.append(f"- 📅 When: by poll ({len(state.date_options)} options)")
    if state.is_recurring and state.recurrence_rule:
        rule = state.recurrence_rule
        lines.append(f"- 🔁 Repeats: {rule.recurrence_pattern.value.lower()} (every {rule.recurrence_interval})")
    if state.budget:
        lines.append(f"- 💰 Budget: {state.budget}")

    return "\n".join(lines)
