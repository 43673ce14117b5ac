"""
Flow Controller - Backend conversation flow management.
Decides when to extract, when to hand a turn to the free-form responder,
what to ask next and when to build the plan and create the event.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional

from .extractor import TurnExtractor, get_extractor
from .intent_classifier import classify
from .keyword_extractor import PLACE_KEYWORDS
from .orchestrator import CreationOrchestrator, CreationResult, default_title, get_orchestrator
from .place_lookup import PlaceLookupService, get_place_lookup
from .planner import PlanGenerator, get_planner
from .prompts import WELCOME_TEXT, render_prompt
from .responder import FlowDirective, FreeFormResponder, ResponderResult, get_responder
from .state_merger import MergeResult, extraction_to_state_fields, merge
from .step_resolver import answered_steps, resolve_step
from ..exceptions import PlanoraError, UnknownActionError
from ..models.catalog import get_catalog
from ..models.event_state import EDIT_GROUPS, STEP_FIELDS, DateOption, StepId, clear_fields
from ..models.plan import GeneratedPlan
from ..models.session import Action, Session, SessionStore, session_store

logger = logging.getLogger(__name__)

FIELD_LABELS = {
    "event_type": "event type",
    "title": "name",
    "participants": "guests",
    "for_whom": "audience",
    "destination": "city",
    "venue": "venue",
    "venue_preference": "kind of place",
    "privacy": "privacy",
    "event_date": "date",
    "date_poll": "date poll",
    "location_poll": "location poll",
    "is_recurring": "repeats",
    "budget": "budget",
    "style": "style",
}

# Steps a skip directive cannot fill in
NOT_SKIPPABLE = (StepId.PARTICIPANTS, StepId.LOCATION_CITY, StepId.SUMMARY)

_NUMBER_RE = re.compile(r"\b(\d{1,6})\b")
_PLACE_WORDS = {keyword for keyword, _ in PLACE_KEYWORDS}


@dataclass
class TurnResponse:
    """What the caller shows after a turn or an action."""
    reply: str
    actions: list[Action] = field(default_factory=list)
    step_id: StepId = StepId.EVENT_TYPE

    def to_dict(self) -> dict:
        return {
            "reply": self.reply,
            "actions": [a.model_dump() for a in self.actions],
            "step_id": self.step_id.value,
        }


def acknowledgment(result: MergeResult) -> Optional[str]:
    """'Great! Birthday! 😊' for one new field, 'Got it! a, b! 🎯' for several."""
    values = []
    for name in result.newly_filled:
        if name not in FIELD_LABELS:
            continue
        value = getattr(result.state, name)
        if name == "event_type":
            value = get_catalog().lookup(value).label if get_catalog().get(value) else value
        elif name == "venue_preference" and value == "recommend":
            value = "I'll recommend a few places"
        elif name == "participants":
            value = f"{value} guests"
        elif name == "privacy":
            value = value.value
        elif name == "event_date":
            value = value.strftime("%Y-%m-%d %H:%M")
        elif isinstance(value, bool):
            value = FIELD_LABELS[name]
        values.append(str(value))

    if not values:
        return None
    if len(values) == 1:
        return f"Great! {values[0]}! 😊"
    return f"Got it! {', '.join(values)}! 🎯"


def raw_answer(step: StepId, utterance: str, free_text: bool = False) -> dict:
    """
    Treat the whole utterance as the answer to the pending step.

    The event type accepts unmatched text only when free text was asked for.
    """
    text = (utterance or "").strip()
    if not text:
        return {}
    if step == StepId.EVENT_TYPE:
        profile = get_catalog().match(text)
        if profile is not None:
            return {"event_type": profile.key}
        return {"event_type": text[:60]} if free_text else {}
    if step == StepId.EVENT_NAME:
        return {"title": text[:120]}
    if step == StepId.PARTICIPANTS:
        numbers = _NUMBER_RE.findall(text)
        return {"participants": int(numbers[0])} if len(numbers) == 1 else {}
    if step == StepId.FOR_WHOM:
        return {"for_whom": text[:120]}
    if step == StepId.LOCATION_CITY:
        return {"destination": text[:120]}
    if step == StepId.VENUE_PREFERENCE:
        lowered = text.lower()
        if lowered in _PLACE_WORDS:
            return {"venue_preference": lowered}
        return {"venue": text[:200]}
    if step == StepId.PRIVACY_SELECTION:
        lowered = text.lower()
        if re.search(r"\b(public|open)\b", lowered):
            return {"privacy": "public"}
        if re.search(r"\b(private|closed|invite)\b", lowered):
            return {"privacy": "private"}
    return {}


def upcoming_saturdays(today: date, count: int = 3) -> list[datetime]:
    days_ahead = (5 - today.weekday()) % 7 or 7
    first = today + timedelta(days=days_ahead)
    return [datetime.combine(first + timedelta(weeks=i), time(19, 0)) for i in range(count)]


class ConversationEngine:
    """
    Controls the conversation flow.

    The engine makes all decisions:
    - When to call the extractor or the free-form responder
    - What question to ask (always resolved from the state)
    - When to generate the plan
    - When to create the event
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        extractor: Optional[TurnExtractor] = None,
        responder: Optional[FreeFormResponder] = None,
        planner: Optional[PlanGenerator] = None,
        orchestrator: Optional[CreationOrchestrator] = None,
        places: Optional[PlaceLookupService] = None
    ):
        self.store = store or session_store
        self.extractor = extractor or get_extractor()
        self.responder = responder or get_responder()
        self.planner = planner or get_planner()
        self.orchestrator = orchestrator or get_orchestrator()
        self.places = places or get_place_lookup()

    # ------------------------------------------------------------------
    # Surface
    # ------------------------------------------------------------------

    def start_session(self) -> tuple[Session, TurnResponse]:
        """Create a session and its welcome message."""
        session = self.store.create()
        prompt = render_prompt(StepId.EVENT_TYPE, session.state)
        response = TurnResponse(reply=f"{WELCOME_TEXT}\n\n{prompt.text}", actions=prompt.actions)
        session.add_turn("assistant", response.reply, response.actions)
        self.store.update(session)
        return session, response

    async def submit_turn(self, session_id: str, utterance: str) -> TurnResponse:
        """
        Process one user message.

        Raises:
            SessionNotFoundError: unknown session
            TurnInProgressError: a turn for this session is still running
        """
        async with self.store.acquire(session_id):
            session = self.store.require(session_id)
            session.add_turn("user", utterance)

            try:
                response = await self._process_utterance(session, utterance)
            except PlanoraError:
                raise
            except Exception as e:
                logger.exception(f"Turn processing failed for session {session_id}: {e}")
                response = await self._recover(session, utterance)

            session.add_turn("assistant", response.reply, response.actions)
            self.store.update(session)
            return response

    async def select_action(self, session_id: str, action_id: str) -> TurnResponse:
        """
        Apply a suggested action.

        Raises:
            SessionNotFoundError: unknown session
            TurnInProgressError: a turn for this session is still running
            UnknownActionError: the action id is not recognised
        """
        async with self.store.acquire(session_id):
            session = self.store.require(session_id)
            lines, extra_actions = await self._apply_action(session, action_id)
            session.add_turn("user", action_id)

            response = await self._respond(session, lines, extra_actions)
            session.add_turn("assistant", response.reply, response.actions)
            self.store.update(session)
            return response

    async def confirm_and_create(self, session_id: str, user_id: Optional[str] = None) -> CreationResult:
        """
        Create the event from the session, then discard the session.

        Raises:
            SessionNotFoundError, TurnInProgressError
            EventValidationError: a mandatory field is missing (nothing was called)
            Whatever the persistence layer raised for the Event itself
        """
        async with self.store.acquire(session_id):
            session = self.store.require(session_id)
            self.orchestrator.validate(session.state)

            plan = await self._ensure_plan(session)
            result = await self.orchestrator.create(session.state, plan, user_id)

            session.created_event_id = result.event_id
            session.add_turn("assistant", "🎉 Your event has been created!")
            logger.info(f"Session {session_id} created event {result.event_id} ({result.warnings} warnings)")

        self.store.delete(session_id)
        return result

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------

    async def _process_utterance(self, session: Session, utterance: str) -> TurnResponse:
        step = resolve_step(session.state)
        intent = classify(utterance)
        lines: list[str] = []
        # The raw utterance may answer the step unless the responder already pulled data from it
        raw_allowed = True

        if intent.needs_special_handling:
            result = await self.responder.respond(utterance, session.state, step, intent)

            if result.directive == FlowDirective.RESTART:
                session.reset()
                return await self._respond(session, [result.reply])

            if result.extracted_data:
                raw_allowed = False
                merged = self._merge(session, extraction_to_state_fields(result.extracted_data))
                ack = acknowledgment(merged)
                if ack:
                    result.reply = f"{result.reply}\n\n{ack}"

            if result.directive == FlowDirective.SKIP_STEP:
                return await self._respond(session, [result.reply] + self._skip_step(session, step))
            if result.directive == FlowDirective.GO_BACK:
                return await self._respond(session, [result.reply] + self._go_back(session))
            if not result.should_continue_flow:
                return await self._respond(session, [result.reply])
            lines.append(result.reply)

        extraction = await self.extractor.extract(utterance, session.state)
        fields = extraction_to_state_fields(extraction)

        free_text = session.awaiting_free_text
        session.awaiting_free_text = False
        if raw_allowed and not merge(fields, session.state).newly_filled:
            fields.update(raw_answer(step, utterance, free_text))

        merged = self._merge(session, fields)
        ack = acknowledgment(merged)
        if ack:
            lines.append(ack)
        elif not merged.changed and not lines:
            lines.append("Hmm, I didn't catch that.")

        return await self._respond(session, lines)

    async def _recover(self, session: Session, utterance: str) -> TurnResponse:
        """Last resort after an unexpected error: let the responder answer."""
        step = resolve_step(session.state)
        result = await self.responder.respond(utterance, session.state, step)
        if result.directive == FlowDirective.RESTART:
            session.reset()
        try:
            return await self._respond(session, [result.reply])
        except Exception as e:
            logger.exception(f"Rendering after recovery failed: {e}")
            return TurnResponse(reply=ResponderResult.safe_default().reply, step_id=step)

    def _merge(self, session: Session, fields: dict) -> MergeResult:
        result = merge(fields, session.state)
        if result.changed:
            session.set_state(result.state)
            logger.debug(f"Session {session.session_id} filled {result.newly_filled}")
        return result

    async def _respond(
        self,
        session: Session,
        lines: list[str],
        extra_actions: Optional[list[Action]] = None
    ) -> TurnResponse:
        """Render the step resolved from the current state after the given lines."""
        step = resolve_step(session.state)
        prompt = render_prompt(step, session.state)
        parts = [line for line in lines if line]

        if step == StepId.SUMMARY:
            plan = await self._ensure_plan(session)
            parts.append(prompt.text)
            parts.append(format_plan(plan))
            parts.append("Happy with it? Confirm to create the event, or change anything below.")
        else:
            parts.append(prompt.text)

        actions = list(extra_actions or []) + prompt.actions
        return TurnResponse(reply="\n\n".join(parts), actions=actions, step_id=step)

    async def _ensure_plan(self, session: Session, force: bool = False) -> GeneratedPlan:
        """Current plan, regenerated when stale or on request."""
        plan = session.get_current_plan()
        if plan is not None and not force:
            return plan
        plan = await self.planner.generate(session.state)
        plan.state_fingerprint = session.state.fingerprint()
        session.add_plan(plan)
        logger.info(f"Session {session.session_id} plan v{plan.version} (fallback={plan.is_fallback})")
        return plan

    # ------------------------------------------------------------------
    # Flow directives
    # ------------------------------------------------------------------

    def _skip_step(self, session: Session, step: StepId) -> list[str]:
        if step in NOT_SKIPPABLE:
            return ["I need this one to continue 🙏"]

        state = session.state
        profile = get_catalog().lookup(state.event_type)
        defaults = {
            StepId.EVENT_TYPE: {"event_type": "other"},
            StepId.EVENT_NAME: {"title": default_title(state)},
            StepId.FOR_WHOM: {"for_whom": profile.default_audience or "Everyone"},
            StepId.VENUE_PREFERENCE: {"venue_preference": "recommend"},
            StepId.PRIVACY_SELECTION: {"privacy": "private"},
            StepId.DATE_SELECTION: {"date_poll": True},
        }
        self._merge(session, defaults[step])
        return []

    def _go_back(self, session: Session) -> list[str]:
        """Clear the last answered step before the current one."""
        current = resolve_step(session.state)
        answered = answered_steps(session.state)
        if current != StepId.SUMMARY:
            order = list(STEP_FIELDS)
            answered = [s for s in answered if order.index(s) < order.index(current)]
        if not answered:
            return ["We're at the very first question."]
        session.set_state(clear_fields(session.state, STEP_FIELDS[answered[-1]]))
        return []

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _apply_action(self, session: Session, action_id: str) -> tuple[list[str], list[Action]]:
        """Apply an action; returns lines to show and extra actions to offer."""
        state = session.state
        profile = get_catalog().lookup(state.event_type)

        if action_id == "restart":
            session.reset()
            return ["Okay, starting over! 🔄"], []
        if action_id == "skip":
            return self._skip_step(session, resolve_step(state)), []
        if action_id == "back":
            return self._go_back(session), []
        if action_id == "continue":
            return [], []
        if action_id in EDIT_GROUPS:
            session.set_state(clear_fields(state, EDIT_GROUPS[action_id]))
            return ["Sure, let's change that."], []
        if action_id == "regenerate_plan":
            if resolve_step(state) != StepId.SUMMARY:
                return ["Let's finish the details first."], []
            await self._ensure_plan(session, force=True)
            return ["Here's a fresh plan 🔄"], []

        if action_id == "type_other":
            session.awaiting_free_text = True
            return ["Tell me in a few words what kind of event it is."], []
        if action_id.startswith("type_"):
            key = action_id[len("type_"):]
            if get_catalog().get(key) is None:
                raise UnknownActionError(action_id)
            return self._ack(session, {"event_type": key}), []

        if action_id.startswith("for_"):
            options = {o.id: o.label for o in get_catalog().default.audience_options + profile.audience_options}
            if action_id not in options:
                raise UnknownActionError(action_id)
            return self._ack(session, {"for_whom": options[action_id]}), []

        if action_id.startswith("venue_"):
            return await self._choose_venue_kind(session, action_id[len("venue_"):])
        if action_id.startswith("place_"):
            index = action_id[len("place_"):]
            if not index.isdigit() or not 1 <= int(index) <= len(state.shortlisted_places):
                raise UnknownActionError(action_id)
            return self._ack(session, {"venue": state.shortlisted_places[int(index) - 1].name}), []
        if action_id == "create_location_poll":
            if not state.shortlisted_places:
                return ["I need a few candidate places before opening a poll."], []
            self._merge(session, {"location_poll": True})
            return ["📊 Guests will vote on the place."], []
        if action_id == "manual_location":
            return ["Type the name or address of the place."], []

        if action_id in ("privacy_private", "privacy_public"):
            return self._ack(session, {"privacy": action_id[len("privacy_"):]}), []

        if action_id == "select_date":
            return ["Type the date and time, for example 2026-12-24 at 19:00."], []
        if action_id == "create_date_poll":
            self._merge(session, {"date_poll": True})
            offers = [
                Action(id=f"date_option_{d.isoformat()}", label=d.strftime("%a %d/%m %H:%M"), icon="🗓️")
                for d in upcoming_saturdays(date.today())
            ]
            return ["🗳️ Date poll on! Pick the dates to vote on."], offers
        if action_id.startswith("date_option_"):
            when = _parse_action_datetime(action_id, "date_option_")
            options = list(state.date_options)
            if all(o.start_date != when for o in options):
                options.append(DateOption(id=f"option_{len(options) + 1}", start_date=when,
                                          text=when.strftime("%Y-%m-%d %H:%M")))
            session.set_state(state.model_copy(update={"date_poll": True, "date_options": options}))
            return [f"Added {when.strftime('%Y-%m-%d %H:%M')} to the poll."], []
        if action_id.startswith("date_"):
            when = _parse_action_datetime(action_id, "date_")
            return self._ack(session, {"event_date": when}), []

        raise UnknownActionError(action_id)

    def _ack(self, session: Session, fields: dict) -> list[str]:
        ack = acknowledgment(self._merge(session, fields))
        return [ack] if ack else []

    async def _choose_venue_kind(self, session: Session, kind: str) -> tuple[list[str], list[Action]]:
        lines = self._ack(session, {"venue_preference": kind})
        state = session.state

        places = await self.places.search(kind, state.destination)
        if not places:
            return lines, []

        self._merge(session, {"shortlisted_places": places})
        listing = "\n".join(f"{i}. {p.name}" for i, p in enumerate(places, start=1))
        lines.append(f"A few places in {state.destination}:\n{listing}")
        offers = [Action(id=f"place_{i}", label=p.name, icon="📍") for i, p in enumerate(places, start=1)]
        offers.append(Action(id="create_location_poll", label="Let guests vote", icon="📊"))
        return lines, offers


def _parse_action_datetime(action_id: str, prefix: str) -> datetime:
    try:
        return datetime.fromisoformat(action_id[len(prefix):])
    except ValueError as e:
        raise UnknownActionError(action_id) from e


def format_plan(plan: GeneratedPlan) -> str:
    """Format a plan for display."""
    lines = [f"**{plan.summary}**"]
    if plan.itinerary:
        lines.append("\n🗓️ **On the day:**")
        for entry in plan.itinerary:
            lines.append(f"  • {entry.time or '--:--'}: {entry.activity}")
    if plan.tasks:
        lines.append("\n✅ **To do:**")
        for task in plan.tasks[:6]:
            lines.append(f"  • {task.title}")
        if len(plan.tasks) > 6:
            lines.append(f"  ... and {len(plan.tasks) - 6} more tasks")
    if plan.estimated_budget:
        lines.append(f"\n💰 Estimated budget: {plan.estimated_budget}")
    return "\n".join(lines)


# Global conversation engine
engine: Optional[ConversationEngine] = None


def get_engine() -> ConversationEngine:
    """Get or create the global conversation engine."""
    global engine
    if engine is None:
        engine = ConversationEngine()
    return engine
