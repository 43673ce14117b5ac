"""
Plan Generator.
Builds the event-day itinerary and preparation tasks from the collected state.
"""
import logging
from typing import Optional

from pydantic import ValidationError

from .llm_client import LLMClient, get_llm_client
from ..exceptions import LLMError
from ..models.catalog import get_catalog
from ..models.event_state import EventState
from ..models.plan import MAX_DUE_OFFSET_DAYS, GeneratedPlan, ItineraryEntry, PlanTask

logger = logging.getLogger(__name__)


PLANNER_SYSTEM_PROMPT = """You are an event planner. Create a realistic plan for the event described below.

YOUR JOB:
1. Write an itinerary for the day of the event, in chronological order
2. List the preparation tasks the organizer must do, with due dates relative to the event
3. Add short recommendations and a rough budget estimate

RULES:
- Use ONLY the facts given; do not invent a different location or date
- Task due_offset_days is negative for tasks before the event (e.g. -14 = two weeks before)
- Times are 24h "HH:MM"
- Keep it practical: 3-6 itinerary entries, 3-8 tasks

OUTPUT FORMAT - Return ONLY valid JSON:
{
  "summary": "One sentence describing the plan",
  "itinerary": [
    {"time": "HH:MM", "activity": "Short title", "description": "What happens", "location": "Where or null"}
  ],
  "tasks": [
    {"title": "Task", "description": "Details", "due_offset_days": -7, "category": "venue|food|invitations|logistics|other", "priority": "low|medium|high"}
  ],
  "recommendations": ["tip"],
  "estimated_budget": "rough range with currency"
}"""


PLAN_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "itinerary": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "time": {"type": "string"},
                    "activity": {"type": "string"},
                    "description": {"type": "string"},
                    "location": {"type": ["string", "null"]},
                },
                "required": ["activity"],
            },
        },
        "tasks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "due_offset_days": {"type": "integer"},
                    "category": {"type": "string"},
                    "priority": {"type": "string"},
                },
                "required": ["title"],
            },
        },
        "recommendations": {"type": "array", "items": {"type": "string"}},
        "estimated_budget": {"type": ["string", "null"]},
    },
    "required": ["itinerary", "tasks"],
}

FIELD_LABELS = {
    "event_type": "Event Type",
    "title": "Name",
    "description": "Description",
    "participants": "Participants",
    "for_whom": "For",
    "destination": "City",
    "venue": "Venue",
    "venue_preference": "Kind of Place",
    "privacy": "Privacy",
    "event_date": "Date",
    "end_date": "End Date",
    "date_poll": "Date Decided By Poll",
    "location_poll": "Venue Decided By Poll",
    "is_recurring": "Recurring",
    "budget": "Budget",
    "style": "Style",
}

PRIORITIES = ("low", "medium", "high")


class PlanGenerator:
    """Generates event plans, degrading to a fixed plan on failure."""

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or get_llm_client()

    async def generate(self, state: EventState) -> GeneratedPlan:
        """
        Generate a plan for the event state.

        Returns:
            The generated plan, or the fallback plan if the text-generation
            service fails or returns nothing usable
        """
        messages = [
            {"role": "system", "content": PLANNER_SYSTEM_PROMPT},
            {"role": "user", "content": f"""EVENT DETAILS:
{self._format_state(state)}

Generate the plan now."""}
        ]

        try:
            result = await self.llm.chat_json(messages, schema=PLAN_SCHEMA, temperature=0.7, max_tokens=3000)
            plan = self._parse_plan(result)
        except (LLMError, ValidationError) as e:
            logger.warning(f"Plan generation failed, using fallback plan: {e}")
            return fallback_plan(state)

        if not plan.itinerary or not plan.tasks:
            logger.warning("Plan generation returned an empty itinerary or task list, using fallback plan")
            return fallback_plan(state)

        plan.state_fingerprint = state.fingerprint()
        return plan

    def _format_state(self, state: EventState) -> str:
        """Format collected fields as readable lines."""
        filled = state.get_filled_fields()
        lines = []

        for field, value in filled.items():
            label = FIELD_LABELS.get(field)
            if label is None:
                continue
            lines.append(f"- {label}: {value}")

        if state.shortlisted_places:
            names = ", ".join(p.name for p in state.shortlisted_places)
            lines.append(f"- Venue Candidates: {names}")
        if state.recurrence_rule:
            rule = state.recurrence_rule
            lines.append(f"- Repeats: {rule.recurrence_pattern.value} every {rule.recurrence_interval}")

        return "\n".join(lines)

    def _parse_plan(self, data: dict) -> GeneratedPlan:
        """Parse LLM response into a GeneratedPlan. Malformed entries are skipped."""
        itinerary = []
        for entry in data.get("itinerary") or []:
            if not isinstance(entry, dict) or not entry.get("activity"):
                continue
            itinerary.append(ItineraryEntry.from_time(
                activity=str(entry["activity"]),
                time=entry.get("time"),
                description=str(entry.get("description") or ""),
                location=entry.get("location") or None,
            ))
        itinerary.sort(key=lambda e: e.offset_minutes)

        tasks = []
        for task in data.get("tasks") or []:
            if not isinstance(task, dict) or not task.get("title"):
                continue
            try:
                offset = int(task.get("due_offset_days") or 0)
            except (TypeError, ValueError, OverflowError):
                offset = 0
            offset = max(-MAX_DUE_OFFSET_DAYS, min(MAX_DUE_OFFSET_DAYS, offset))
            priority = str(task.get("priority") or "medium").lower()
            tasks.append(PlanTask(
                title=str(task["title"]),
                description=str(task.get("description") or ""),
                due_offset_days=offset,
                category=str(task.get("category") or "other"),
                priority=priority if priority in PRIORITIES else "medium",
            ))

        recommendations = [str(r) for r in data.get("recommendations") or [] if r]
        budget = data.get("estimated_budget")

        return GeneratedPlan(
            summary=str(data.get("summary") or "Event plan"),
            itinerary=itinerary,
            tasks=tasks,
            recommendations=recommendations,
            estimated_budget=str(budget) if budget else None,
        )


def fallback_plan(state: EventState) -> GeneratedPlan:
    """Minimal deterministic plan: two itinerary entries, two tasks."""
    profile = get_catalog().lookup(state.event_type)
    where = state.venue or state.destination
    return GeneratedPlan(
        is_fallback=True,
        state_fingerprint=state.fingerprint(),
        summary=f"Basic plan for {state.title or profile.label}",
        itinerary=[
            ItineraryEntry.from_time("Guests arrive", "18:00", "Welcome and get settled", where),
            ItineraryEntry.from_time("Main event", "19:00", "The main part of the event", where),
        ],
        tasks=[
            PlanTask(title="Confirm the venue", description="Book and confirm the place",
                     due_offset_days=-14, category="venue", priority="high"),
            PlanTask(title="Send invitations", description="Invite the participants",
                     due_offset_days=-7, category="invitations", priority="medium"),
        ],
    )


# Global planner instance
planner: Optional[PlanGenerator] = None


def get_planner() -> PlanGenerator:
    """Get or create the global planner."""
    global planner
    if planner is None:
        planner = PlanGenerator()
    return planner
