"""
Intent Classifier - pattern-based tagging of a user utterance.

Decides whether an utterance is a normal answer or something the free-form
responder should handle first (a question, an objection, a request for help
or a wish to go back). Pure: no external calls, no session state.
"""
import re
from dataclasses import dataclass


QUESTION_PATTERNS = [
    re.compile(r"^(what|how|why|when|where|who|which|whose|is|are|does|do|should|would)\b"),
    re.compile(r"\?$"),
    re.compile(r"^(can|could|may) (i|you|we)\b"),
    re.compile(r"^(what does|what's|explain|tell me)\b"),
]

CHALLENGE_PATTERNS = [
    re.compile(r"\b(i )?(don't|do not|dont) understand\b"),
    re.compile(r"\b(i )?(don't|do not|dont) want\b"),
    re.compile(r"\bwhy are you asking\b"),
    re.compile(r"\b(i )?already (told|said|answered)\b"),
    re.compile(r"\byou already asked\b"),
    re.compile(r"\b(not|isn't|irrelevant) relevant\b|\birrelevant\b"),
    re.compile(r"\b(start|begin) (over|again)\b|\brestart\b"),
    re.compile(r"\b(i'?m|i am) confused\b"),
    re.compile(r"\bnot clear\b|\bunclear\b"),
    re.compile(r"\bnever ?mind\b|\bforget it\b"),
    re.compile(r"\bskip\b"),
]

HELP_PATTERNS = [
    re.compile(r"\bhelp\b"),
    re.compile(r"\bwhat can i\b"),
    re.compile(r"\boptions\b"),
    re.compile(r"\b(give me an|for) example\b|\bexamples?\b"),
]

BACK_PATTERNS = [
    re.compile(r"\bgo back\b|\bback up\b"),
    re.compile(r"\bprevious (step|question)\b"),
    re.compile(r"\bchange the\b"),
    re.compile(r"\b(want|need) to (fix|correct)\b"),
]


@dataclass(frozen=True)
class UserIntent:
    """Classification of a single utterance."""
    is_question: bool = False
    is_challenge: bool = False
    is_help_request: bool = False
    is_back_request: bool = False

    @property
    def needs_special_handling(self) -> bool:
        return self.is_question or self.is_challenge or self.is_help_request or self.is_back_request

    def to_dict(self) -> dict:
        return {
            "isQuestion": self.is_question,
            "isChallenge": self.is_challenge,
            "isHelpRequest": self.is_help_request,
            "isBackRequest": self.is_back_request,
            "needsSpecialHandling": self.needs_special_handling,
        }


def classify(utterance: str) -> UserIntent:
    """Tag an utterance. Same input, same output."""
    text = (utterance or "").lower().strip()
    if not text:
        return UserIntent()
    return UserIntent(
        is_question=any(p.search(text) for p in QUESTION_PATTERNS),
        is_challenge=any(p.search(text) for p in CHALLENGE_PATTERNS),
        is_help_request=any(p.search(text) for p in HELP_PATTERNS),
        is_back_request=any(p.search(text) for p in BACK_PATTERNS),
    )
