"""Services for the event planning assistant."""
from .llm_client import LLMClient
from .extractor import TurnExtractor
from .responder import FreeFormResponder
from .planner import PlanGenerator
from .orchestrator import CreationOrchestrator
from .flow_controller import ConversationEngine

__all__ = [
    "LLMClient",
    "TurnExtractor",
    "FreeFormResponder",
    "PlanGenerator",
    "CreationOrchestrator",
    "ConversationEngine",
]
