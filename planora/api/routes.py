"""
API Routes for the event planning assistant.
"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..exceptions import (
    EventValidationError,
    SessionNotFoundError,
    TurnInProgressError,
    UnknownActionError,
)
from ..services.flow_controller import TurnResponse, get_engine
from ..services.step_resolver import missing_steps, resolve_step


router = APIRouter(prefix="/api", tags=["event-planner"])


# Request/Response Models
class ActionModel(BaseModel):
    id: str
    label: str
    icon: Optional[str] = None


class TurnResponseModel(BaseModel):
    session_id: str
    reply: str
    actions: list[ActionModel]
    step_id: str


class ChatRequest(BaseModel):
    session_id: str
    message: str


class ActionRequest(BaseModel):
    session_id: str
    action_id: str


class ConfirmRequest(BaseModel):
    session_id: str
    user_id: Optional[str] = None


class ConfirmResponse(BaseModel):
    event_id: str
    warnings: int
    created: dict[str, int]


class SessionStatusResponse(BaseModel):
    session_id: str
    filled_fields: dict
    step_id: str
    missing_steps: list[str]


def _turn_response(session_id: str, response: TurnResponse) -> TurnResponseModel:
    return TurnResponseModel(session_id=session_id, **response.to_dict())


def _require_session(session_id: str):
    session = get_engine().store.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


# Endpoints

@router.post("/session", response_model=TurnResponseModel)
async def create_session():
    """Create a new chat session."""
    session, response = get_engine().start_session()
    return _turn_response(session.session_id, response)


@router.post("/chat", response_model=TurnResponseModel)
async def chat(request: ChatRequest):
    """Send a chat message and get response."""
    try:
        response = await get_engine().submit_turn(request.session_id, request.message)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except TurnInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _turn_response(request.session_id, response)


@router.post("/action", response_model=TurnResponseModel)
async def select_action(request: ActionRequest):
    """Apply one of the suggested actions."""
    try:
        response = await get_engine().select_action(request.session_id, request.action_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except TurnInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UnknownActionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _turn_response(request.session_id, response)


@router.post("/confirm", response_model=ConfirmResponse)
async def confirm(request: ConfirmRequest):
    """Create the event and its dependents."""
    try:
        result = await get_engine().confirm_and_create(request.session_id, request.user_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except TurnInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except EventValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=502, detail=f"Error creating event: {str(e)}")

    return ConfirmResponse(event_id=result.event_id, warnings=result.warnings, created=result.created)


@router.get("/session/{session_id}", response_model=SessionStatusResponse)
async def get_session_status(session_id: str):
    """Get what has been collected so far."""
    session = _require_session(session_id)
    return SessionStatusResponse(
        session_id=session_id,
        filled_fields=session.state.get_filled_fields(),
        step_id=resolve_step(session.state).value,
        missing_steps=[step.value for step in missing_steps(session.state)],
    )


@router.get("/messages/{session_id}")
async def get_messages(session_id: str):
    """Get all chat messages for a session."""
    session = _require_session(session_id)

    return {
        "messages": [
            {
                "role": turn.role,
                "text": turn.text,
                "actions": [a.model_dump() for a in turn.actions],
                "timestamp": turn.timestamp.isoformat()
            }
            for turn in session.turns
        ]
    }


@router.get("/plan/{session_id}")
async def get_plan(session_id: str):
    """Get the current plan."""
    session = _require_session(session_id)

    current = session.get_current_plan()
    if not current:
        return {"plan": None, "message": "No plan generated yet"}

    return {
        "plan": current.to_display_dict(),
        "total_versions": len(session.plans)
    }


@router.get("/plan/{session_id}/versions")
async def get_all_versions(session_id: str):
    """Get all plan versions."""
    session = _require_session(session_id)

    return {
        "versions": [
            {
                "version": plan.version,
                "created_at": plan.created_at.isoformat(),
                "summary": plan.summary,
                "is_fallback": plan.is_fallback,
                "current": plan.state_fingerprint == session.state.fingerprint()
            }
            for plan in session.plans
        ]
    }
