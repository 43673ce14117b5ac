"""Data models for the event planning assistant."""
from .event_state import EventState, StepId, Privacy, RecurrenceRule, RecurrencePattern, DateOption, Place
from .plan import GeneratedPlan, ItineraryEntry, PlanTask
from .session import Session, SessionStore, Turn, Action, session_store
from .catalog import DomainCatalog, DomainProfile, get_catalog, audience_required

__all__ = [
    "EventState",
    "StepId",
    "Privacy",
    "RecurrenceRule",
    "RecurrencePattern",
    "DateOption",
    "Place",
    "GeneratedPlan",
    "ItineraryEntry",
    "PlanTask",
    "Session",
    "SessionStore",
    "Turn",
    "Action",
    "session_store",
    "DomainCatalog",
    "DomainProfile",
    "get_catalog",
    "audience_required",
]
