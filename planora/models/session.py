"""
Session management - Tracks conversation turns, event state and plans.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
import asyncio
import uuid

from .event_state import EventState
from .plan import GeneratedPlan
from ..exceptions import SessionNotFoundError, TurnInProgressError


class Action(BaseModel):
    """A suggested reply the UI can render as a button."""
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    icon: Optional[str] = None


class Turn(BaseModel):
    """A single message in the conversation. Immutable once recorded."""
    model_config = ConfigDict(frozen=True)

    role: str = Field(..., description="'user' or 'assistant'")
    text: str = Field(..., description="Message content")
    actions: tuple[Action, ...] = Field(default=(), description="Suggested actions")
    timestamp: datetime = Field(default_factory=datetime.now)


class Session(BaseModel):
    """User session with event state and conversation history."""
    session_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique session identifier"
    )
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    state: EventState = Field(default_factory=EventState)
    turns: list[Turn] = Field(default_factory=list)
    plans: list[GeneratedPlan] = Field(default_factory=list, description="All plan versions")
    created_event_id: Optional[str] = None
    awaiting_free_text: bool = Field(default=False, description="Next message is a free-text event type")

    def add_turn(self, role: str, text: str, actions: Optional[list[Action]] = None) -> Turn:
        """Add a message to the conversation."""
        turn = Turn(role=role, text=text, actions=tuple(actions or ()))
        self.turns.append(turn)
        self.updated_at = datetime.now()
        return turn

    def set_state(self, state: EventState):
        self.state = state
        self.updated_at = datetime.now()

    def reset(self):
        """Discard everything collected so far."""
        self.state = EventState()
        self.plans = []
        self.awaiting_free_text = False
        self.updated_at = datetime.now()

    def add_plan(self, plan: GeneratedPlan):
        """Add a new plan version."""
        plan.version = len(self.plans) + 1
        self.plans.append(plan)
        self.updated_at = datetime.now()

    def get_current_plan(self) -> Optional[GeneratedPlan]:
        """Latest plan, or None if there is none or it no longer matches the state."""
        if not self.plans:
            return None
        plan = self.plans[-1]
        if plan.state_fingerprint != self.state.fingerprint():
            return None
        return plan


# In-memory session storage (would be replaced with database in production)
class SessionStore:
    """Simple in-memory session store with one lock per session."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def create(self) -> Session:
        """Create a new session."""
        session = Session()
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[Session]:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def update(self, session: Session):
        """Update a session."""
        self._sessions[session.session_id] = session

    def delete(self, session_id: str):
        """Delete a session."""
        self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)

    def acquire(self, session_id: str) -> asyncio.Lock:
        """
        Return the session's lock, refusing if a turn is already in flight.

        Callers use it as `async with store.acquire(sid):`.
        """
        if session_id not in self._sessions:
            raise SessionNotFoundError(session_id)
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        if lock.locked():
            raise TurnInProgressError(session_id)
        return lock


# Global session store
session_store = SessionStore()
