"""
State Merger - folds extracted attributes into the accumulated event state.

Known fields are never overwritten and empty values never clear anything,
so applying the same partial twice changes nothing the second time.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from ..models.event_state import EventState

logger = logging.getLogger(__name__)

STATE_FIELDS = tuple(EventState.model_fields)


@dataclass
class MergeResult:
    """Outcome of one merge."""
    state: EventState
    newly_filled: list[str] = field(default_factory=list)
    already_known: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.newly_filled)


def is_empty(value: Any) -> bool:
    return value is None or value is False or value == "" or value == [] or value == {}


def extraction_to_state_fields(extraction: dict) -> dict:
    """
    Map an extractor (or responder) payload onto EventState field names.

    Keys that already are state fields pass through; extractor-only keys are
    translated; anything else is dropped.
    """
    if not extraction:
        return {}

    fields = {k: v for k, v in extraction.items() if k in STATE_FIELDS and not is_empty(v)}

    if "destination" not in fields and not is_empty(extraction.get("city")):
        fields["destination"] = extraction["city"]
    if "venue_preference" not in fields and not is_empty(extraction.get("place_type")):
        fields["venue_preference"] = extraction["place_type"]

    pattern = extraction.get("recurrence_pattern")
    if extraction.get("is_recurring") or pattern:
        fields["is_recurring"] = True
        if pattern and "recurrence_rule" not in fields:
            fields["recurrence_rule"] = {
                "recurrence_pattern": pattern,
                "recurrence_interval": extraction.get("recurrence_interval") or 1,
                "recurrence_end_type": "NEVER",
            }

    return fields


def _coerce(name: str, value: Any) -> Any:
    """Validate a single field through the model; None if it does not fit."""
    try:
        return getattr(EventState.model_validate({name: value}), name)
    except ValidationError as e:
        logger.debug(f"Dropping invalid value for {name}: {value!r} ({e.error_count()} errors)")
        return None


def merge(partial: dict, state: EventState) -> MergeResult:
    """
    Merge a partial field map into the state.

    Args:
        partial: Field map keyed by EventState field names
        state: Current state (not mutated)

    Returns:
        MergeResult with the new state and which fields were newly filled
        versus already known
    """
    updates = {}
    result = MergeResult(state=state)

    for name, value in (partial or {}).items():
        if name not in STATE_FIELDS or is_empty(value):
            continue
        value = _coerce(name, value)
        if is_empty(value):
            continue
        if not is_empty(getattr(state, name)):
            result.already_known.append(name)
            continue
        updates[name] = value
        result.newly_filled.append(name)

    if updates:
        result.state = state.model_copy(update=updates)
    return result
