"""Tests for the plan generator."""
import pytest
from datetime import datetime
from unittest.mock import AsyncMock

from planora.models.event_state import EventState
from planora.models.plan import MAX_DUE_OFFSET_DAYS, PlanTask, parse_offset_minutes
from planora.services.planner import PlanGenerator, fallback_plan


STATE = EventState(
    event_type="birthday",
    title="30th birthday for Michal",
    participants=20,
    destination="Tel Aviv",
    venue_preference="restaurant",
    privacy="private",
    event_date=datetime(2026, 12, 24, 19, 0),
)


class TestPlanGenerator:
    """Test plan parsing and the fallback plan."""

    @pytest.mark.asyncio
    async def test_parses_plan(self):
        """Generated plans are parsed and normalized."""
        llm = AsyncMock()
        llm.chat_json.return_value = {
            "summary": "Dinner party",
            "itinerary": [
                {"time": "21:00", "activity": "Cake", "description": "Candles"},
                {"time": "19:30", "activity": "Dinner", "location": "Taizu"},
                {"description": "no activity, skipped"},
            ],
            "tasks": [
                {"title": "Book table", "due_offset_days": "-14", "priority": "HIGH"},
                {"title": "Order cake", "priority": "urgent"},
            ],
            "recommendations": ["Book early"],
            "estimated_budget": "3000 ILS",
        }

        plan = await PlanGenerator(llm).generate(STATE)

        assert not plan.is_fallback
        assert [e.activity for e in plan.itinerary] == ["Dinner", "Cake"]
        assert plan.itinerary[0].offset_minutes == 19 * 60 + 30
        assert plan.tasks[0].due_offset_days == -14
        assert plan.tasks[0].priority == "high"
        assert plan.tasks[1].priority == "medium"
        assert plan.state_fingerprint == STATE.fingerprint()

    @pytest.mark.asyncio
    async def test_failure_uses_fallback(self, failing_llm):
        """A failed call gives the fallback plan."""
        plan = await PlanGenerator(failing_llm).generate(STATE)

        assert plan.is_fallback
        assert len(plan.itinerary) == 2
        assert len(plan.tasks) == 2

    @pytest.mark.asyncio
    async def test_empty_plan_uses_fallback(self):
        """An empty plan gives the fallback plan."""
        llm = AsyncMock()
        llm.chat_json.return_value = {"summary": "nothing", "itinerary": [], "tasks": []}

        plan = await PlanGenerator(llm).generate(STATE)

        assert plan.is_fallback

    @pytest.mark.asyncio
    async def test_mock_provider_uses_catalog_template(self, offline_llm):
        """The mock provider plans from the catalog."""
        plan = await PlanGenerator(offline_llm).generate(STATE)

        assert not plan.is_fallback
        assert plan.itinerary[-1].activity == "Cake and wishes"
        assert "Order the cake" in [t.title for t in plan.tasks]

    def test_fallback_plan_is_deterministic(self):
        """The fallback plan is always the same."""
        first, second = fallback_plan(STATE), fallback_plan(STATE)

        assert [e.activity for e in first.itinerary] == [e.activity for e in second.itinerary]
        assert first.itinerary[0].location == "Tel Aviv"
        assert first.tasks[0].due_offset_days < 0


class TestOffsets:

    @pytest.mark.parametrize("text,expected", [
        ("18:30", 1110),
        ("7.05", 425),
        ("25:00", 0),
        ("soon", 0),
        (None, 0),
    ])
    def test_parse_offset_minutes(self, text, expected):
        """Clock times become minute offsets."""
        assert parse_offset_minutes(text) == expected


class TestTaskOffsets:

    def test_offset_is_clamped_on_the_model(self):
        """Task offsets are held to ten years either side of the event."""
        assert PlanTask(title="Far", due_offset_days=10 ** 7).due_offset_days == MAX_DUE_OFFSET_DAYS
        assert PlanTask(title="Past", due_offset_days=-(10 ** 7)).due_offset_days == -MAX_DUE_OFFSET_DAYS

    @pytest.mark.asyncio
    async def test_generated_offset_is_clamped(self):
        """An absurd offset in generated output is clamped, not passed through."""
        llm = AsyncMock()
        llm.chat_json.return_value = {
            "summary": "Plan",
            "itinerary": [{"time": "19:00", "activity": "Dinner"}],
            "tasks": [
                {"title": "Book table", "due_offset_days": 99999999},
                {"title": "Order cake", "due_offset_days": "-99999999"},
            ],
        }

        plan = await PlanGenerator(llm).generate(STATE)

        assert [t.due_offset_days for t in plan.tasks] == [MAX_DUE_OFFSET_DAYS, -MAX_DUE_OFFSET_DAYS]
