"""
Event State Schema - the attributes gathered during an event-creation chat.
Every field is optional; the step resolver decides what is still missing.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional
from datetime import datetime
from enum import Enum
import hashlib


class StepId(str, Enum):
    """The single question currently pending. Derived, never hand-advanced."""
    EVENT_TYPE = "event_type"
    EVENT_NAME = "event_name"
    PARTICIPANTS = "participants"
    FOR_WHOM = "for_whom"
    LOCATION_CITY = "location_city"
    VENUE_PREFERENCE = "venue_preference"
    PRIVACY_SELECTION = "privacy_selection"
    DATE_SELECTION = "date_selection"
    SUMMARY = "summary"


class Privacy(str, Enum):
    PRIVATE = "private"
    PUBLIC = "public"


class RecurrencePattern(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY_BY_DAY_OF_MONTH = "MONTHLY_BY_DAY_OF_MONTH"
    YEARLY = "YEARLY"


class RecurrenceRule(BaseModel):
    """How a recurring event repeats."""
    recurrence_pattern: RecurrencePattern = RecurrencePattern.WEEKLY
    recurrence_interval: int = Field(default=1, ge=1)
    recurrence_days_of_week: list[int] = Field(default_factory=list)
    recurrence_day_of_month: Optional[int] = Field(None, ge=1, le=31)
    recurrence_end_type: str = "NEVER"
    recurrence_end_date: Optional[datetime] = None
    recurrence_count: Optional[int] = Field(None, ge=1)


class DateOption(BaseModel):
    """A candidate date for the date poll."""
    id: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    text: Optional[str] = None


class Place(BaseModel):
    """A candidate venue returned by the place lookup."""
    name: str
    address: str = ""
    place_id: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    website: Optional[str] = None
    phone_number: Optional[str] = None


class EventState(BaseModel):
    """
    Accumulated structured attributes for one in-progress event.
    A field once set is sticky; only explicit edit/restart directives clear it.
    """
    # What
    event_type: Optional[str] = Field(None, description="Domain type of the event")
    title: Optional[str] = Field(None, description="Event name")
    description: Optional[str] = Field(None, description="Short description")

    # Who
    participants: Optional[int] = Field(None, ge=1, le=100000, description="Expected participant count")
    for_whom: Optional[str] = Field(None, description="Target audience")

    # Where
    destination: Optional[str] = Field(None, description="City or region")
    venue: Optional[str] = Field(None, description="Specific venue name")
    venue_preference: Optional[str] = Field(None, description="Kind of place wanted")
    location_poll: bool = Field(False, description="Venue decided by poll")
    shortlisted_places: list[Place] = Field(default_factory=list)

    # Visibility
    privacy: Optional[Privacy] = None

    # When
    event_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    date_poll: bool = Field(False, description="Date decided by poll")
    date_options: list[DateOption] = Field(default_factory=list)
    is_recurring: bool = False
    recurrence_rule: Optional[RecurrenceRule] = None

    # Flavour
    budget: Optional[str] = None
    style: Optional[str] = None

    @field_validator("event_type", "title", "description", "for_whom", "destination",
                     "venue", "venue_preference", "budget", "style", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("privacy", mode="before")
    @classmethod
    def normalize_privacy(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    def has_venue(self) -> bool:
        return bool(self.venue or self.location_poll or self.venue_preference)

    def has_date(self) -> bool:
        return bool(self.event_date or self.date_poll)

    def get_filled_fields(self) -> dict:
        """Return dict of fields that have values, JSON friendly."""
        data = self.model_dump(mode="json")
        return {k: v for k, v in data.items() if v not in (None, False, [], "")}

    def fingerprint(self) -> str:
        """Stable digest of the state, used to detect stale plans."""
        return hashlib.sha1(self.model_dump_json().encode("utf-8")).hexdigest()


# Fields that may be cleared together by an edit directive
EDIT_GROUPS: dict[str, tuple[str, ...]] = {
    "edit_title": ("title",),
    "edit_participants": ("participants",),
    "edit_audience": ("for_whom",),
    "edit_location": ("destination", "venue", "venue_preference", "location_poll", "shortlisted_places"),
    "edit_date": ("event_date", "end_date", "date_poll", "date_options"),
}

# Fields each step solicits, in resolver order
STEP_FIELDS: dict[StepId, tuple[str, ...]] = {
    StepId.EVENT_TYPE: ("event_type",),
    StepId.EVENT_NAME: ("title",),
    StepId.PARTICIPANTS: ("participants",),
    StepId.FOR_WHOM: ("for_whom",),
    StepId.LOCATION_CITY: ("destination",),
    StepId.VENUE_PREFERENCE: ("venue", "venue_preference", "location_poll", "shortlisted_places"),
    StepId.PRIVACY_SELECTION: ("privacy",),
    StepId.DATE_SELECTION: ("event_date", "end_date", "date_poll", "date_options"),
}


def clear_fields(state: EventState, fields: tuple[str, ...]) -> EventState:
    """Return a copy of the state with the given fields reset to defaults."""
    data: dict[str, Any] = state.model_dump()
    for name in fields:
        default = EventState.model_fields[name].get_default(call_default_factory=True)
        data[name] = default
    return EventState(**data)
