"""Shared fixtures: offline collaborators for the conversation engine."""
import pytest
from unittest.mock import AsyncMock

from planora.config import settings
from planora.exceptions import LLMUnavailableError
from planora.models.session import SessionStore
from planora.services.extractor import TurnExtractor
from planora.services.flow_controller import ConversationEngine
from planora.services.llm_client import LLMClient
from planora.services.orchestrator import CreationOrchestrator
from planora.services.persistence import InMemoryEntityStore
from planora.services.place_lookup import PlaceLookupService
from planora.services.planner import PlanGenerator
from planora.services.responder import FreeFormResponder


@pytest.fixture
def offline_llm(monkeypatch):
    """LLM client backed by the bundled mock provider."""
    monkeypatch.setattr(settings, "llm_provider", "mock")
    return LLMClient()


@pytest.fixture
def failing_llm():
    """LLM client whose every call fails."""
    llm = AsyncMock()
    llm.chat.side_effect = LLMUnavailableError("service down")
    llm.chat_json.side_effect = LLMUnavailableError("service down")
    return llm


@pytest.fixture
def entity_store():
    return InMemoryEntityStore()


def build_engine(llm, entity_store, planner_llm=None, places=None) -> ConversationEngine:
    return ConversationEngine(
        store=SessionStore(),
        extractor=TurnExtractor(llm),
        responder=FreeFormResponder(llm),
        planner=PlanGenerator(planner_llm or llm),
        orchestrator=CreationOrchestrator(entity_store),
        places=places or PlaceLookupService(enabled=False),
    )


@pytest.fixture
def engine(offline_llm, entity_store):
    return build_engine(offline_llm, entity_store)
