"""
Free-form Responder.
Answers questions, objections and navigation requests that are not a plain
answer to the pending step, and tells the flow controller what to do next.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .intent_classifier import UserIntent
from .llm_client import LLMClient, get_llm_client
from ..exceptions import LLMError
from ..models.event_state import EventState, StepId

logger = logging.getLogger(__name__)


RESPONDER_SYSTEM_PROMPT = """You are a friendly, human assistant that helps people create events in a chat.

THE USER DID NOT SIMPLY ANSWER THE QUESTION. They asked something, objected, asked for help or want to navigate.

YOUR JOB:
1. Understand what the user wants or asks
2. Give a short, friendly and helpful reply
3. If it is a question about the process, explain briefly
4. If the user is frustrated, reassure them and offer help
5. If they want to skip or change something, confirm that it is fine
6. Always end by nudging them back to the event

RULES:
- 2-3 sentences at most
- Friendly tone, not robotic
- At most one emoji
- Do not repeat information that was already collected

OUTPUT FORMAT - Return ONLY valid JSON:
{
  "response": "your reply to the user",
  "shouldContinueFlow": true or false (should the normal flow process this message after your reply),
  "suggestedAction": "continue" | "skip_step" | "go_back" | "restart" | null,
  "extractedData": { any event details found in the message, or null }
}"""


RESPONDER_SCHEMA = {
    "type": "object",
    "properties": {
        "response": {"type": "string"},
        "shouldContinueFlow": {"type": "boolean"},
        "suggestedAction": {"type": ["string", "null"]},
        "extractedData": {"type": ["object", "null"]},
    },
    "required": ["response", "shouldContinueFlow"],
}

SAFE_REPLY = "I'm here to help! Let's keep going with your event 😊"


class FlowDirective(str, Enum):
    CONTINUE = "continue"
    SKIP_STEP = "skip_step"
    GO_BACK = "go_back"
    RESTART = "restart"


@dataclass
class ResponderResult:
    reply: str
    should_continue_flow: bool = True
    directive: Optional[FlowDirective] = None
    extracted_data: Optional[dict] = None

    @classmethod
    def safe_default(cls) -> "ResponderResult":
        return cls(reply=SAFE_REPLY, should_continue_flow=True)


class FreeFormResponder:
    """Handles utterances the step flow cannot treat as a plain answer."""

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or get_llm_client()

    async def respond(
        self,
        utterance: str,
        state: EventState,
        step: StepId,
        intent: Optional[UserIntent] = None
    ) -> ResponderResult:
        """
        Produce a reply plus a flow directive.

        Never raises: any failure of the text-generation service yields the
        safe default (apologetic reply, continue the flow, no directive).
        """
        messages = [
            {"role": "system", "content": RESPONDER_SYSTEM_PROMPT},
            {"role": "user", "content": self._format_context(utterance, state, step, intent)}
        ]

        try:
            data = await self.llm.chat_json(messages, schema=RESPONDER_SCHEMA, temperature=0.5, max_tokens=400)
        except LLMError as e:
            logger.warning(f"Free-form responder failed, using safe default: {e}")
            return ResponderResult.safe_default()

        return self._parse_result(data)

    def _format_context(
        self,
        utterance: str,
        state: EventState,
        step: StepId,
        intent: Optional[UserIntent]
    ) -> str:
        lines = [
            "CURRENT CONTEXT:",
            f"- Current step: {step.value}",
            f"- Event type: {state.event_type or 'not set yet'}",
            f"- Name: {state.title or 'not set yet'}",
            f"- Participants: {state.participants or 'not set yet'}",
            f"- Location: {state.venue or state.destination or 'not set yet'}",
            f"- For whom: {state.for_whom or 'not set yet'}",
        ]
        if intent is not None:
            lines.append(f"- Detected intent: {intent.to_dict()}")
        lines.append("")
        lines.append(f"USER SAID:\n{utterance}")
        return "\n".join(lines)

    def _parse_result(self, data: dict) -> ResponderResult:
        reply = data.get("response")
        if not isinstance(reply, str) or not reply.strip():
            logger.warning("Free-form responder returned no reply text, using safe default")
            return ResponderResult.safe_default()

        should_continue = data.get("shouldContinueFlow")
        if not isinstance(should_continue, bool):
            should_continue = True

        directive = None
        action = data.get("suggestedAction")
        if isinstance(action, str) and action.strip():
            try:
                directive = FlowDirective(action.strip().lower())
            except ValueError:
                logger.info(f"Ignoring unknown flow directive: {action}")

        extracted = data.get("extractedData")
        if not isinstance(extracted, dict) or not extracted:
            extracted = None

        return ResponderResult(
            reply=reply.strip(),
            should_continue_flow=should_continue,
            directive=directive,
            extracted_data=extracted,
        )


# Global responder instance
responder: Optional[FreeFormResponder] = None


def get_responder() -> FreeFormResponder:
    """Get or create the global responder."""
    global responder
    if responder is None:
        responder = FreeFormResponder()
    return responder
