"""
Creation Orchestrator.

Creates the Event first, then its dependents (membership, recurrence rule,
polls, tasks, itinerary items). Only the Event is required: a dependent
failure is logged and counted, never rolled back into the Event.
"""
import asyncio
import logging
from datetime import date, datetime, time, timedelta
from functools import partial
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from .persistence import EntityStore, get_entity_store
from ..exceptions import EventCreationError, EventValidationError
from ..models.catalog import get_catalog
from ..models.event_state import DateOption, EventState, Privacy
from ..models.plan import GeneratedPlan, ItineraryEntry, PlanTask

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60


class CreationResult(BaseModel):
    """What was created for one event."""
    event_id: str
    warnings: int = 0
    created: dict[str, int] = Field(default_factory=dict)
    failed: dict[str, int] = Field(default_factory=dict)


def default_title(state: EventState) -> str:
    """Title derived from type and destination when the user never gave one."""
    label = get_catalog().lookup(state.event_type).label
    if state.event_type and label == get_catalog().default.label:
        label = state.event_type.replace("_", " ").capitalize()
    return f"{label} in {state.destination}" if state.destination else label


def event_location(state: EventState) -> Optional[str]:
    parts = [p for p in (state.venue, state.destination) if p]
    return ", ".join(parts) if parts else None


class CreationOrchestrator:
    """Turns a confirmed event state and plan into persisted entities."""

    def __init__(self, store: Optional[EntityStore] = None):
        self.store = store or get_entity_store()

    def validate(self, state: EventState):
        """
        Check the mandatory fields that cannot be defaulted.

        Raises:
            EventValidationError: listing what is missing
        """
        missing = []
        if not state.event_type and not state.title:
            missing.append("event_type")
        if not (state.destination or state.venue or state.location_poll):
            missing.append("destination")
        if missing:
            raise EventValidationError(missing)

    async def create(
        self,
        state: EventState,
        plan: GeneratedPlan,
        user_id: Optional[str] = None
    ) -> CreationResult:
        """
        Create the Event and all its dependents.

        Returns:
            CreationResult with the Event id and per-kind counts

        Raises:
            EventValidationError: before any call to the store
            EventCreationError: the store returned no id for the Event
            Any error the store raised while creating the Event, unchanged
        """
        self.validate(state)

        try:
            event_id = await self.store.create("Event", self._event_fields(state, user_id))
        except Exception as e:
            logger.error(f"Event creation failed: {e}")
            raise
        if not event_id:
            logger.error("Event creation returned no id")
            raise EventCreationError("Event creation returned no id")

        logger.info(f"Created event {event_id}")
        result = CreationResult(event_id=event_id)

        jobs = self._dependent_jobs(event_id, state, plan, user_id)
        outcomes = await asyncio.gather(*(self._best_effort(kind, index, job) for kind, index, job in jobs))

        for (kind, _, _), ok in zip(jobs, outcomes):
            bucket = result.created if ok else result.failed
            bucket[kind] = bucket.get(kind, 0) + 1
        result.warnings = sum(result.failed.values())

        if result.warnings:
            logger.warning(f"Event {event_id} created with {result.warnings} dependent failures: {result.failed}")
        return result

    async def _best_effort(self, kind: str, index: int, job: Callable[[], Awaitable[str]]) -> bool:
        try:
            await job()
            return True
        except Exception as e:
            logger.error(f"Failed to create {kind} #{index + 1}: {e}")
            return False

    def _dependent_jobs(
        self,
        event_id: str,
        state: EventState,
        plan: GeneratedPlan,
        user_id: Optional[str]
    ) -> list[tuple[str, int, Callable[[], Awaitable[str]]]]:
        """
        One job per dependent. Field maps are built inside the job, so a bad
        plan entry fails only its own slot.
        """
        jobs = []

        def add(kind: str, index: int, build: Callable[[], dict]):
            jobs.append((kind, index, lambda: self.store.create(kind, build())))

        if user_id:
            add("EventMembership", 0, lambda: {
                "event_id": event_id,
                "user_id": user_id,
                "role": "organizer",
                "status": "accepted",
            })

        if state.is_recurring and state.recurrence_rule:
            add("RecurrenceRule", 0, lambda: self._recurrence_fields(event_id, state))

        if state.location_poll:
            if state.shortlisted_places:
                add("Poll", 0, lambda: self._location_poll_fields(event_id, state, user_id))
            else:
                logger.warning("Location poll requested without shortlisted places, not created")

        if state.date_poll:
            options = [o for o in state.date_options if o.start_date is not None]
            if options:
                add("Poll", 1, lambda: self._date_poll_fields(event_id, options, user_id))
            else:
                logger.warning("Date poll requested without complete date options, not created")

        base_day = (state.event_date.date() if state.event_date else date.today())
        for index, task in enumerate(plan.tasks):
            add("Task", index, partial(self._task_fields, event_id, base_day, task))

        day_start = (
            datetime.combine(state.event_date.date(), time(0, 0)) if state.event_date else None
        )
        for index, entry in enumerate(plan.itinerary):
            add("ItineraryItem", index, partial(self._itinerary_fields, event_id, day_start, index, entry))

        return jobs

    def _date_poll_fields(self, event_id: str, options: list[DateOption], user_id: Optional[str]) -> dict:
        return {
            "event_id": event_id,
            "type": "date",
            "title": "When works for everyone?",
            "created_by": user_id,
            "options": [
                {
                    "id": option.id,
                    "start_date": option.start_date.isoformat(),
                    "end_date": option.end_date.isoformat() if option.end_date else None,
                    "text": option.text or option.start_date.strftime("%Y-%m-%d %H:%M"),
                }
                for option in options
            ],
        }

    def _task_fields(self, event_id: str, base_day: date, task: PlanTask) -> dict:
        due = datetime.combine(base_day + timedelta(days=task.due_offset_days), time(9, 0))
        return {
            "event_id": event_id,
            "title": task.title,
            "description": task.description,
            "status": "todo",
            "priority": task.priority,
            "category": task.category,
            "due_date": due.isoformat(),
        }

    def _itinerary_fields(
        self,
        event_id: str,
        day_start: Optional[datetime],
        index: int,
        entry: ItineraryEntry
    ) -> dict:
        when = day_start + timedelta(minutes=entry.offset_minutes) if day_start else None
        return {
            "event_id": event_id,
            "title": entry.activity,
            "description": entry.description,
            "location": entry.location,
            "date": when.isoformat() if when else None,
            "order": index,
        }

    def _event_fields(self, state: EventState, user_id: Optional[str]) -> dict:
        return {
            "title": state.title or default_title(state),
            "description": state.description,
            "category": state.event_type,
            "location": event_location(state) or default_title(state),
            "city": state.destination,
            "participants_count": state.participants,
            "for_whom": state.for_whom,
            "venue_preference": state.venue_preference,
            "privacy": (state.privacy or Privacy.PRIVATE).value,
            "start_date": state.event_date.isoformat() if state.event_date else None,
            "end_date": state.end_date.isoformat() if state.end_date else None,
            "is_recurring": state.is_recurring,
            "budget": state.budget,
            "style": state.style,
            "status": "planning",
            "created_by": user_id,
        }

    def _recurrence_fields(self, event_id: str, state: EventState) -> dict:
        fields = state.recurrence_rule.model_dump(mode="json")
        fields["event_id"] = event_id
        if state.event_date:
            fields["original_event_start_time"] = state.event_date.strftime("%H:%M")
        else:
            fields["original_event_start_time"] = None
        if state.event_date and state.end_date and state.end_date > state.event_date:
            minutes = int((state.end_date - state.event_date).total_seconds() // 60)
        else:
            minutes = DEFAULT_DURATION_MINUTES
        fields["original_event_duration_minutes"] = minutes
        return fields

    def _location_poll_fields(self, event_id: str, state: EventState, user_id: Optional[str]) -> dict:
        return {
            "event_id": event_id,
            "type": "location",
            "title": "Where should we meet?",
            "created_by": user_id,
            "options": [
                {
                    "id": f"place_{i + 1}",
                    "text": place.name,
                    "location": place.address,
                    "place_id": place.place_id,
                    "latitude": place.lat,
                    "longitude": place.lon,
                }
                for i, place in enumerate(state.shortlisted_places)
            ],
        }


# Global orchestrator instance
orchestrator: Optional[CreationOrchestrator] = None


def get_orchestrator() -> CreationOrchestrator:
    """Get or create the global orchestrator."""
    global orchestrator
    if orchestrator is None:
        orchestrator = CreationOrchestrator()
    return orchestrator
