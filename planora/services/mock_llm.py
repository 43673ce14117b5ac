"""
Mock LLM Client - Catalog Grounded Edition.
Answers the extractor, responder and planner prompts offline, using the
keyword extractor and the domain catalog as the source of truth.
"""
import json
import logging
import re
from typing import Optional

from .keyword_extractor import extract_keywords
from ..models.catalog import get_catalog

logger = logging.getLogger(__name__)

_USER_MESSAGE_RE = re.compile(r"USER MESSAGE:\s*(.*)\Z", re.DOTALL)
_USER_SAID_RE = re.compile(r"USER SAID:\s*(.*)\Z", re.DOTALL)
_STEP_RE = re.compile(r"Current step:\s*(\w+)")
_FIELD_RE = re.compile(r"^- ([A-Za-z ]+): (.+)$", re.MULTILINE)

STEP_HELP = {
    "event_type": "Tell me what you are celebrating or organizing, like a birthday, a wedding or a work event.",
    "event_name": "Give the event a short name your guests will recognize.",
    "participants": "A rough head count is fine, you can change it later.",
    "for_whom": "This helps me tailor the plan to the people it is for.",
    "location_city": "Just the city or area is enough for now.",
    "venue_preference": "Pick the kind of place you like, or let me recommend a few.",
    "privacy_selection": "Private events are invite only; public ones can be found by anyone.",
    "date_selection": "Type a date and time, or open a poll and let the guests vote.",
    "summary": "Everything is ready. You can edit any detail or create the event.",
}


class MockLLMClient:
    """
    Offline LLM stand-in.
    Source of truth: keyword extractor + resources/domain_types.json
    """

    def __init__(self):
        self.model = "mock-catalog-grounded"

    async def chat(
        self,
        messages: list[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False
    ) -> str:
        """Route the request by the system prompt it carries."""
        user_msg = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")
        system_msg = next((m["content"] for m in messages if m["role"] == "system"), "").lower()

        if "event information extractor" in system_msg:
            return self._extract(user_msg)
        if "helps people create events" in system_msg:
            return self._respond(user_msg)
        if "event planner" in system_msg:
            return self._plan(user_msg)

        return json.dumps({"response": "I can help you plan events."}) if json_mode else "I can help you plan events."

    def _extract(self, prompt: str) -> str:
        match = _USER_MESSAGE_RE.search(prompt)
        text = match.group(1).strip() if match else prompt
        return json.dumps(extract_keywords(text))

    def _respond(self, prompt: str) -> str:
        match = _USER_SAID_RE.search(prompt)
        text = (match.group(1) if match else prompt).strip().lower()
        step_match = _STEP_RE.search(prompt)
        step = step_match.group(1) if step_match else "event_type"

        if re.search(r"\b(start over|start again|restart|from scratch)\b", text):
            return self._reply("No problem, let's start over! 🔄", False, "restart")
        if re.search(r"\bskip\b|\bnever ?mind\b|\bforget it\b", text):
            return self._reply("Sure, we can skip that one.", True, "skip_step")
        if re.search(r"\bgo back\b|\bprevious\b|\bchange the\b|\b(fix|correct)\b", text):
            return self._reply("Of course, let's go back.", False, "go_back")
        if re.search(r"\balready (told|said|answered)\b", text):
            extracted = {k: v for k, v in json.loads(self._extract(text)).items() if v is not None}
            return self._reply("Sorry about that, thanks for your patience!", True, "continue", extracted or None)

        return self._reply(STEP_HELP.get(step, STEP_HELP["event_type"]), False, None)

    def _reply(self, text: str, should_continue: bool, action: Optional[str], extracted: Optional[dict] = None) -> str:
        return json.dumps({
            "response": text,
            "shouldContinueFlow": should_continue,
            "suggestedAction": action,
            "extractedData": extracted,
        })

    def _plan(self, prompt: str) -> str:
        fields = {label.strip().lower(): value.strip() for label, value in _FIELD_RE.findall(prompt)}
        profile = get_catalog().lookup(fields.get("event type"))
        where = fields.get("venue") or fields.get("city")
        name = fields.get("name") or profile.label

        itinerary = [
            {"time": entry.time, "activity": entry.activity, "description": entry.description, "location": where}
            for entry in profile.itinerary_template
        ]
        tasks = []
        count = len(profile.suggested_tasks)
        for i, title in enumerate(profile.suggested_tasks):
            tasks.append({
                "title": title,
                "description": f"{title} for {name}",
                "due_offset_days": -7 * (count - i),
                "category": "other",
                "priority": "high" if i == 0 else "medium",
            })

        return json.dumps({
            "summary": f"A {profile.label.lower()} plan for {name}" + (f" in {where}" if where else ""),
            "itinerary": itinerary,
            "tasks": tasks,
            "recommendations": [f"Book early, {profile.label.lower()} venues fill up fast."],
            "estimated_budget": None,
        })
