"""
Error taxonomy for the conversation engine.

Recoverable errors (LLM failures) are handled inside the component that
called the model; everything else propagates to the caller.
"""


class PlanoraError(Exception):
    """Base class for all engine errors."""


class LLMError(PlanoraError):
    """The text-generation service could not produce a usable answer."""


class LLMUnavailableError(LLMError):
    """Transport failure or timeout talking to the text-generation service."""


class LLMResponseError(LLMError):
    """The text-generation service answered with malformed or non-JSON output."""


class SessionNotFoundError(PlanoraError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class TurnInProgressError(PlanoraError):
    """A previous turn for the same session is still being processed."""

    def __init__(self, session_id: str):
        super().__init__(f"A turn is already in progress for session {session_id}")
        self.session_id = session_id


class UnknownActionError(PlanoraError):
    def __init__(self, action_id: str):
        super().__init__(f"Unknown action: {action_id}")
        self.action_id = action_id


class EventValidationError(PlanoraError):
    """A mandatory field that cannot be defaulted is missing."""

    def __init__(self, missing: list[str]):
        super().__init__(f"Missing required fields: {', '.join(missing)}")
        self.missing = missing


class EventCreationError(PlanoraError):
    """The persistence API did not return an id for the primary Event."""


class PersistenceError(PlanoraError):
    """The persistence API accepted a create call but returned no id."""
