"""Tests for the turn extractor and its keyword fallback."""
import pytest
from datetime import date
from unittest.mock import AsyncMock

from planora.exceptions import LLMResponseError, LLMUnavailableError
from planora.services.extractor import TurnExtractor
from planora.services.keyword_extractor import EXTRACTION_FIELDS, extract_keywords


TODAY = date(2026, 10, 19)


class TestKeywordExtractor:
    """Test the deterministic fallback."""

    def test_full_sentence(self):
        """Type, head count and city from one sentence."""
        result = extract_keywords("A birthday for 20 people in Tel Aviv on 2026-12-24 at 8pm", today=TODAY)

        assert result["event_type"] == "birthday"
        assert result["participants"] == 20
        assert result["destination"] == "Tel Aviv"
        assert result["event_date"] == "2026-12-24T20:00:00"

    def test_absent_fields_are_null(self):
        """Fields not mentioned come back as None."""
        result = extract_keywords("A wedding", today=TODAY)

        assert set(result) == set(EXTRACTION_FIELDS)
        assert result["event_type"] == "wedding"
        assert result["title"] is None
        assert result["participants"] is None
        assert result["budget"] is None

    def test_relative_date(self):
        """Relative dates resolve against today."""
        result = extract_keywords("dinner tomorrow at 19:30", today=TODAY)

        assert result["event_date"] == "2026-10-20T19:30:00"

    def test_month_is_not_a_city(self):
        """A month after 'in' is not taken as a city."""
        assert extract_keywords("A party in March", today=TODAY)["destination"] is None

    def test_recurrence(self):
        """Recurrence pattern and interval."""
        result = extract_keywords("team sync every two weeks", today=TODAY)

        assert result["is_recurring"] is True
        assert result["recurrence_pattern"] == "WEEKLY"
        assert result["recurrence_interval"] == 2

    def test_place_and_privacy(self):
        """Place type and privacy keywords."""
        result = extract_keywords("a private dinner at a restaurant", today=TODAY)

        assert result["place_type"] == "restaurant"
        assert result["privacy"] == "private"

    def test_title_in_quotes(self):
        """Quoted text becomes the title."""
        result = extract_keywords('call it "Michal turns 30"', today=TODAY)

        assert result["title"] == "Michal turns 30"

    def test_empty_text(self):
        """Empty input extracts nothing."""
        assert all(v is None for v in extract_keywords("", today=TODAY).values())


class TestTurnExtractor:
    """Test the extraction logic."""

    def test_extraction_cleaning(self):
        """Test that extraction cleans data properly."""
        extractor = TurnExtractor(llm=AsyncMock())

        raw_data = {
            "participants": "20",
            "keywords": "hotels",
            "is_recurring": "yes",
            "recurrence_pattern": "weekly",
            "privacy": "secret",
            "event_date": "next friday",
            "destination": "unknown",
            "random_field": "ignored"
        }

        cleaned = extractor._clean_extraction(raw_data)

        assert cleaned["participants"] == 20
        assert cleaned["keywords"] == ["hotels"]
        assert cleaned["is_recurring"] is True
        assert cleaned["recurrence_pattern"] == "WEEKLY"
        assert cleaned["privacy"] is None
        assert cleaned["event_date"] is None
        assert cleaned["destination"] is None
        assert "random_field" not in cleaned
        assert set(cleaned) == set(EXTRACTION_FIELDS)

    def test_non_positive_participants_dropped(self):
        """Zero or negative head counts are dropped."""
        extractor = TurnExtractor(llm=AsyncMock())

        assert extractor._clean_extraction({"participants": 0})["participants"] is None

    @pytest.mark.asyncio
    async def test_uses_llm_result(self):
        """The model's extraction is cleaned and returned."""
        llm = AsyncMock()
        llm.chat_json.return_value = {"event_type": "wedding", "title": "Dana & Yoni", "participants": 250}

        result = await TurnExtractor(llm).extract("Dana and Yoni are getting married, 250 guests")

        assert result["event_type"] == "wedding"
        assert result["title"] == "Dana & Yoni"
        assert result["participants"] == 250
        assert result["destination"] is None

    @pytest.mark.asyncio
    async def test_unreachable_service_falls_back(self, failing_llm):
        """An unreachable service falls back to keyword extraction."""
        result = await TurnExtractor(failing_llm).extract("A birthday for 20 people in Tel Aviv")

        assert result["event_type"] == "birthday"
        assert result["participants"] == 20
        assert result["destination"] == "Tel Aviv"

    @pytest.mark.asyncio
    async def test_malformed_response_falls_back(self):
        """Malformed model output falls back to keyword extraction."""
        llm = AsyncMock()
        llm.chat_json.side_effect = LLMResponseError("not json")

        result = await TurnExtractor(llm).extract("a picnic for 12 people")

        assert result["event_type"] == "picnic"
        assert result["participants"] == 12

    @pytest.mark.asyncio
    async def test_state_is_sent_as_context(self):
        """Known fields are sent along with the message."""
        from planora.models.event_state import EventState

        llm = AsyncMock()
        llm.chat_json.return_value = {}

        await TurnExtractor(llm).extract("20", EventState(event_type="birthday"))

        messages = llm.chat_json.call_args.args[0]
        assert "birthday" in messages[1]["content"]
        assert "USER MESSAGE:\n20" in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_unavailable_error_type(self):
        """Unavailable errors are LLM errors."""
        llm = AsyncMock()
        llm.chat_json.side_effect = LLMUnavailableError("timeout")

        result = await TurnExtractor(llm).extract("nothing useful here")

        assert all(v is None for v in result.values())
