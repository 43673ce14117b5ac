"""Tests for the creation orchestrator."""
import pytest
from datetime import datetime

from planora.exceptions import EventCreationError, EventValidationError
from planora.models.event_state import DateOption, EventState, Place, RecurrenceRule
from planora.models.plan import GeneratedPlan, ItineraryEntry, PlanTask
from planora.services.orchestrator import CreationOrchestrator, default_title
from planora.services.persistence import InMemoryEntityStore


class FlakyStore(InMemoryEntityStore):
    """Records every call; fails the calls it is told to."""

    def __init__(self, fail_on=None, event_error=None, event_id=None):
        super().__init__()
        self.calls = []
        self.fail_on = fail_on or set()
        self.event_error = event_error
        self.event_id = event_id

    async def create(self, entity: str, fields: dict) -> str:
        self.calls.append((entity, fields))
        if entity == "Event":
            if self.event_error is not None:
                raise self.event_error
            if self.event_id is not None:
                return self.event_id
        if (entity, fields.get("title")) in self.fail_on:
            raise RuntimeError(f"{entity} rejected")
        return await super().create(entity, fields)


STATE = EventState(
    event_type="birthday",
    title="30th birthday for Michal",
    participants=20,
    destination="Tel Aviv",
    venue_preference="restaurant",
    privacy="private",
    event_date=datetime(2026, 12, 24, 19, 0),
)

PLAN = GeneratedPlan(
    summary="Plan",
    itinerary=[
        ItineraryEntry.from_time("Guests arrive", "19:00"),
        ItineraryEntry.from_time("Cake", "21:30"),
    ],
    tasks=[
        PlanTask(title="Book the venue", due_offset_days=-14),
        PlanTask(title="Order the cake", due_offset_days=-3),
        PlanTask(title="Send invitations", due_offset_days=-10),
    ],
)


class TestCreationOrchestrator:
    """Test creation order and failure policy."""

    @pytest.mark.asyncio
    async def test_creates_event_and_dependents(self):
        """Event first, then membership, tasks and itinerary."""
        store = FlakyStore()

        result = await CreationOrchestrator(store).create(STATE, PLAN, user_id="user-1")

        assert result.event_id
        assert result.warnings == 0
        assert result.created == {"EventMembership": 1, "Task": 3, "ItineraryItem": 2}
        assert store.calls[0][0] == "Event"
        event = store.all("Event")[0]
        assert event["title"] == "30th birthday for Michal"
        assert event["location"] == "Tel Aviv"
        assert event["privacy"] == "private"
        member = store.all("EventMembership")[0]
        assert member == {"event_id": result.event_id, "user_id": "user-1", "role": "organizer", "status": "accepted"}

    @pytest.mark.asyncio
    async def test_task_failure_is_isolated(self):
        """A failed task does not affect the others."""
        store = FlakyStore(fail_on={("Task", "Order the cake")})

        result = await CreationOrchestrator(store).create(STATE, PLAN)

        assert result.event_id
        assert result.warnings == 1
        assert result.failed == {"Task": 1}
        titles = [t["title"] for t in store.all("Task")]
        assert sorted(titles) == ["Book the venue", "Send invitations"]
        assert store.count("ItineraryItem") == 2

    @pytest.mark.asyncio
    async def test_event_failure_aborts_everything(self):
        """An Event failure stops everything and propagates unchanged."""
        error = ConnectionError("persistence down")
        store = FlakyStore(event_error=error)

        with pytest.raises(ConnectionError) as exc_info:
            await CreationOrchestrator(store).create(STATE, PLAN, user_id="user-1")

        assert exc_info.value is error
        assert [entity for entity, _ in store.calls] == ["Event"]

    @pytest.mark.asyncio
    async def test_missing_event_id(self):
        """An Event without an id is an error."""
        store = FlakyStore(event_id="")

        with pytest.raises(EventCreationError):
            await CreationOrchestrator(store).create(STATE, PLAN)

        assert len(store.calls) == 1

    @pytest.mark.asyncio
    async def test_validation_before_any_call(self):
        """Validation fails before the store is called."""
        store = FlakyStore()

        with pytest.raises(EventValidationError) as exc_info:
            await CreationOrchestrator(store).create(EventState(participants=5), PLAN)

        assert exc_info.value.missing == ["event_type", "destination"]
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_defaults_title_and_location(self):
        """Title and location default from type and city."""
        store = FlakyStore()
        state = EventState(event_type="wedding", destination="Haifa", privacy="public")

        await CreationOrchestrator(store).create(state, PLAN)

        event = store.all("Event")[0]
        assert event["title"] == "Wedding in Haifa"
        assert event["location"] == "Haifa"
        assert event["privacy"] == "public"
        assert default_title(EventState(event_type="graduation")) == "Graduation"

    @pytest.mark.asyncio
    async def test_itinerary_timestamps(self):
        """Itinerary items are placed on the event day."""
        store = FlakyStore()

        await CreationOrchestrator(store).create(STATE, PLAN)

        items = sorted(store.all("ItineraryItem"), key=lambda i: i["order"])
        assert items[0]["date"] == "2026-12-24T19:00:00"
        assert items[1]["date"] == "2026-12-24T21:30:00"

    @pytest.mark.asyncio
    async def test_task_due_dates(self):
        """Task due dates are relative to the event date."""
        store = FlakyStore()

        await CreationOrchestrator(store).create(STATE, PLAN)

        due = {t["title"]: t["due_date"] for t in store.all("Task")}
        assert due["Book the venue"].startswith("2026-12-10")
        assert due["Order the cake"].startswith("2026-12-21")

    @pytest.mark.asyncio
    async def test_recurrence_and_polls(self):
        """Recurrence rule and both polls are created."""
        store = FlakyStore()
        state = STATE.model_copy(update={
            "is_recurring": True,
            "recurrence_rule": RecurrenceRule(recurrence_pattern="YEARLY"),
            "end_date": datetime(2026, 12, 24, 23, 0),
            "location_poll": True,
            "shortlisted_places": [Place(name="Taizu", address="Menachem Begin 23")],
            "date_poll": True,
            "date_options": [
                DateOption(id="option_1", start_date=datetime(2027, 1, 2, 19, 0)),
                DateOption(id="option_2", text="incomplete"),
            ],
        })

        result = await CreationOrchestrator(store).create(state, PLAN)

        assert result.created["RecurrenceRule"] == 1
        assert result.created["Poll"] == 2
        rule = store.all("RecurrenceRule")[0]
        assert rule["recurrence_pattern"] == "YEARLY"
        assert rule["original_event_start_time"] == "19:00"
        assert rule["original_event_duration_minutes"] == 240
        polls = {p["type"]: p for p in store.all("Poll")}
        assert [o["text"] for o in polls["location"]["options"]] == ["Taizu"]
        assert [o["id"] for o in polls["date"]["options"]] == ["option_1"]

    @pytest.mark.asyncio
    async def test_no_event_date_leaves_itinerary_undated(self):
        """Without a date the itinerary is undated."""
        store = FlakyStore()
        state = STATE.model_copy(update={"event_date": None, "date_poll": True})

        await CreationOrchestrator(store).create(state, PLAN)

        assert all(item["date"] is None for item in store.all("ItineraryItem"))
        assert store.count("Task") == 3

    @pytest.mark.asyncio
    async def test_bad_task_fails_only_its_own_slot(self):
        """A task whose due date cannot be computed does not stop the others."""
        store = FlakyStore()
        plan = PLAN.model_copy(update={"tasks": [
            PlanTask(title="Book the venue", due_offset_days=-14),
            PlanTask.model_construct(title="Broken", description="", due_offset_days=10 ** 7,
                                     category="other", priority="medium"),
            PlanTask(title="Send invitations", due_offset_days=-10),
        ]})

        result = await CreationOrchestrator(store).create(STATE, plan, user_id="user-1")

        assert result.event_id
        assert result.failed == {"Task": 1}
        assert result.warnings == 1
        assert sorted(t["title"] for t in store.all("Task")) == ["Book the venue", "Send invitations"]
        assert store.count("ItineraryItem") == 2
        assert store.count("EventMembership") == 1
        assert store.count("Event") == 1
