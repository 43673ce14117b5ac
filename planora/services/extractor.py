"""
Turn Extractor.
Extracts event attributes from one user message.
"""
import logging
from typing import Optional
from datetime import date, datetime

from .llm_client import LLMClient, get_llm_client
from .keyword_extractor import EXTRACTION_FIELDS, empty_extraction, extract_keywords
from ..exceptions import LLMError
from ..models.event_state import EventState, RecurrencePattern

logger = logging.getLogger(__name__)


EXTRACTOR_SYSTEM_PROMPT = """You are an event information extractor. Your ONLY job is to extract event planning facts from the user's message and return them as JSON.

STRICT RULES:
1. Extract ONLY what the user explicitly states
2. Return null for any field not mentioned
3. Do NOT guess or infer missing values
4. Do NOT ask questions
5. The user may answer several questions at once; extract everything they gave
6. Return ONLY valid JSON matching the exact field names below

FIELDS TO EXTRACT (use exact field names):
- event_type: string (birthday, wedding, party, trip, work_event, conference, meeting, workshop, picnic, other...)
- title: string (the event's name, e.g. "30th birthday for Michal")
- participants: integer (number of people)
- destination: string (city or region)
- city: string (a specific city name)
- place_type: string (restaurant, cafe, hall, club, park, hotel, garden, zimmer, bar, spa, villa...)
- activity_type: string
- for_whom: string (who the event is for)
- budget: string
- style: string (luxury, casual, nature, formal, family...)
- date_info: string (any date wording the user used)
- event_date: "YYYY-MM-DDTHH:MM" if the date can be resolved, otherwise null
- description: string
- privacy: "private" | "public"
- is_recurring: boolean (every week, monthly, annual...)
- recurrence_pattern: "DAILY" | "WEEKLY" | "MONTHLY_BY_DAY_OF_MONTH" | "YEARLY"
- recurrence_interval: integer ("every two weeks" = 2)
- needs_accommodation: boolean
- keywords: array of strings (search keywords)

Respond with ONLY a JSON object. No explanations."""


EXTRACTION_SCHEMA = {
    "type": "object",
    "properties": {
        "event_type": {"type": ["string", "null"]},
        "title": {"type": ["string", "null"]},
        "participants": {"type": ["integer", "null"]},
        "destination": {"type": ["string", "null"]},
        "city": {"type": ["string", "null"]},
        "place_type": {"type": ["string", "null"]},
        "activity_type": {"type": ["string", "null"]},
        "for_whom": {"type": ["string", "null"]},
        "budget": {"type": ["string", "null"]},
        "style": {"type": ["string", "null"]},
        "date_info": {"type": ["string", "null"]},
        "event_date": {"type": ["string", "null"]},
        "description": {"type": ["string", "null"]},
        "privacy": {"type": ["string", "null"], "enum": ["private", "public", None]},
        "is_recurring": {"type": ["boolean", "null"]},
        "recurrence_pattern": {"type": ["string", "null"]},
        "recurrence_interval": {"type": ["integer", "null"]},
        "needs_accommodation": {"type": ["boolean", "null"]},
        "keywords": {"type": ["array", "null"], "items": {"type": "string"}},
    },
}


FIELD_TYPES = {
    "participants": int,
    "recurrence_interval": int,
    "is_recurring": bool,
    "needs_accommodation": bool,
    "keywords": list,
}


class TurnExtractor:
    """Extracts structured event information from user messages."""

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or get_llm_client()

    async def extract(
        self,
        user_message: str,
        current_state: Optional[EventState] = None
    ) -> dict:
        """
        Extract event information from a user message.

        Args:
            user_message: The user's chat message
            current_state: Current event state (for disambiguation)

        Returns:
            Dict with every extractable field; None for unmentioned ones.
            Falls back to keyword matching if the LLM is unavailable.
        """
        # Build context with current state
        context_parts = []
        if current_state:
            filled = current_state.get_filled_fields()
            filled.pop("shortlisted_places", None)
            if filled:
                context_parts.append(f"Already known: {filled}")

        # Add current date for relative date parsing
        context_parts.append(f"Today's date: {datetime.now().strftime('%Y-%m-%d')}")

        context = "\n".join(context_parts)

        messages = [
            {"role": "system", "content": EXTRACTOR_SYSTEM_PROMPT},
            {"role": "user", "content": f"CONTEXT:\n{context}\n\nUSER MESSAGE:\n{user_message}"}
        ]

        try:
            # Low temperature for consistency
            result = await self.llm.chat_json(messages, schema=EXTRACTION_SCHEMA, temperature=0.1)
        except LLMError as e:
            logger.warning(f"LLM extraction failed, using keyword fallback: {e}")
            return self.fallback(user_message)

        return self._clean_extraction(result)

    def fallback(self, user_message: str) -> dict:
        return self._clean_extraction(extract_keywords(user_message, today=date.today()))

    def _clean_extraction(self, data: dict) -> dict:
        """Clean and validate extracted data into the full output shape."""
        cleaned = empty_extraction()

        for field in EXTRACTION_FIELDS:
            value = data.get(field)

            if value is None or value == "" or value == []:
                continue
            if isinstance(value, str) and value.strip().lower() in ("null", "none", "unknown", "n/a"):
                continue

            expected_type = FIELD_TYPES.get(field, str)
            try:
                if expected_type == int and not isinstance(value, int):
                    value = int(float(str(value).strip()))
                elif expected_type == bool and not isinstance(value, bool):
                    value = str(value).lower() in ("true", "yes", "1")
                elif expected_type == list and not isinstance(value, list):
                    value = [value]
                elif expected_type == str and not isinstance(value, str):
                    value = str(value)
            except (ValueError, TypeError):
                # Skip invalid values
                continue

            if isinstance(value, str):
                value = value.strip()
            cleaned[field] = value

        if cleaned["participants"] is not None and cleaned["participants"] < 1:
            cleaned["participants"] = None
        if cleaned["recurrence_pattern"] is not None:
            pattern = cleaned["recurrence_pattern"].upper()
            cleaned["recurrence_pattern"] = pattern if pattern in RecurrencePattern.__members__ else None
        if cleaned["privacy"] is not None and cleaned["privacy"].lower() not in ("private", "public"):
            cleaned["privacy"] = None
        if cleaned["event_date"] is not None and not _is_iso_datetime(cleaned["event_date"]):
            cleaned["event_date"] = None

        return cleaned


def _is_iso_datetime(value: str) -> bool:
    try:
        datetime.fromisoformat(value)
        return True
    except ValueError:
        return False


# Global extractor instance
extractor: Optional[TurnExtractor] = None


def get_extractor() -> TurnExtractor:
    """Get or create the global extractor."""
    global extractor
    if extractor is None:
        extractor = TurnExtractor()
    return extractor
