"""
Plan models - the derived itinerary and preparation tasks for an event.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
import re


_TIME_RE = re.compile(r"^\s*(\d{1,2})[:.](\d{2})")

# Tasks are due at most ten years either side of the event
MAX_DUE_OFFSET_DAYS = 3650


class ItineraryEntry(BaseModel):
    """A single activity on the day of the event."""
    activity: str = Field(..., description="Activity title")
    time: Optional[str] = Field(None, description="Start time, 'HH:MM'")
    offset_minutes: int = Field(
        default=0,
        ge=0,
        description="Minutes from the start of the event day"
    )
    description: str = Field(default="", description="What happens")
    location: Optional[str] = None

    @classmethod
    def from_time(cls, activity: str, time: Optional[str], description: str = "",
                  location: Optional[str] = None) -> "ItineraryEntry":
        """Build an entry whose offset is derived from an 'HH:MM' string."""
        return cls(
            activity=activity,
            time=time,
            offset_minutes=parse_offset_minutes(time),
            description=description,
            location=location,
        )


class PlanTask(BaseModel):
    """A preparation task, due relative to the event date."""
    title: str
    description: str = ""
    due_offset_days: int = Field(default=0, description="Days relative to the event (negative = before)")
    category: str = "other"
    priority: str = "medium"

    @field_validator("due_offset_days")
    @classmethod
    def clamp_offset(cls, v: int) -> int:
        return max(-MAX_DUE_OFFSET_DAYS, min(MAX_DUE_OFFSET_DAYS, v))


class GeneratedPlan(BaseModel):
    """Complete derived plan for an event."""
    version: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=datetime.now)
    state_fingerprint: str = Field(default="", description="Fingerprint of the state it was built from")
    is_fallback: bool = False
    summary: str = ""
    itinerary: list[ItineraryEntry] = Field(default_factory=list)
    tasks: list[PlanTask] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    estimated_budget: Optional[str] = None

    def to_display_dict(self) -> dict:
        """Convert to display-friendly dictionary."""
        return {
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "is_fallback": self.is_fallback,
            "summary": self.summary,
            "estimated_budget": self.estimated_budget,
            "recommendations": self.recommendations,
            "itinerary": [
                {
                    "time": entry.time,
                    "offset_minutes": entry.offset_minutes,
                    "activity": entry.activity,
                    "description": entry.description,
                    "location": entry.location,
                }
                for entry in self.itinerary
            ],
            "tasks": [
                {
                    "title": task.title,
                    "description": task.description,
                    "due_offset_days": task.due_offset_days,
                    "category": task.category,
                    "priority": task.priority,
                }
                for task in self.tasks
            ],
        }


def parse_offset_minutes(time_str: Optional[str]) -> int:
    """'18:30' -> 1110. Unparseable values map to 0."""
    if not time_str:
        return 0
    match = _TIME_RE.match(str(time_str))
    if not match:
        return 0
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return 0
    return hours * 60 + minutes
