"""
Keyword Extractor - deterministic fallback for the turn extractor.

Produces the same shape as the LLM extraction with lower recall. Used when
the text-generation service is unreachable or answers with garbage, and by
the offline mock client.
"""
import re
from datetime import date, datetime, timedelta
from typing import Optional

from ..models.catalog import get_catalog


# Every field the extractor may return; absent ones are None.
EXTRACTION_FIELDS = (
    "event_type", "title", "participants", "destination", "city", "place_type",
    "activity_type", "for_whom", "budget", "style", "date_info", "event_date",
    "description", "privacy", "is_recurring", "recurrence_pattern",
    "recurrence_interval", "needs_accommodation", "keywords",
)

KNOWN_CITIES = [
    "Tel Aviv", "Jerusalem", "Haifa", "Eilat", "Beer Sheva", "Netanya", "Herzliya",
    "Paris", "London", "New York", "Berlin", "Rome", "Amsterdam", "Barcelona",
    "Madrid", "Prague", "Vienna", "Budapest", "Athens", "Greece", "Lisbon",
]

PLACE_KEYWORDS = [
    ("coffee", "cafe"), ("cafe", "cafe"), ("restaurant", "restaurant"),
    ("event hall", "hall"), ("hall", "hall"), ("club", "club"), ("park", "park"),
    ("guest house", "zimmer"), ("zimmer", "zimmer"), ("hotel", "hotel"),
    ("garden", "garden"), ("bar", "bar"), ("pub", "bar"), ("spa", "spa"),
    ("villa", "villa"), ("beach", "beach"), ("winery", "winery"), ("home", "home"),
    ("office", "office"), ("online", "online"), ("zoom", "online"),
]

AUDIENCE_KEYWORDS = [
    (r"\bfor (my )?(wife|husband|partner|girlfriend|boyfriend)\b", "For my partner"),
    (r"\bfor (my |the )?(kids|children|son|daughter)\b", "For the kids"),
    (r"\bfor (my |the )?(team|colleagues|company|work)\b", "For work"),
    (r"\bfor (my |the )?family\b", "For family"),
    (r"\bfor (my )?friends\b", "For friends"),
    (r"\bfor (a|my) friend\b", "For a friend"),
    (r"\bfor (me|myself)\b", "For me"),
]

STYLE_KEYWORDS = [
    (("luxury", "luxurious", "fancy", "upscale"), "luxury"),
    (("casual", "relaxed", "chill"), "casual"),
    (("outdoor", "outdoors", "nature"), "nature"),
    (("formal", "elegant"), "formal"),
    (("family style", "family-friendly"), "family"),
]

RECURRENCE_KEYWORDS = [
    (r"\b(every day|daily)\b", "DAILY"),
    (r"\b(every (\w+ )?weeks?|weekly)\b", "WEEKLY"),
    (r"\b(every (\w+ )?months?|monthly)\b", "MONTHLY_BY_DAY_OF_MONTH"),
    (r"\b(every year|yearly|annual|annually)\b", "YEARLY"),
]

NUMBER_WORDS = {"two": 2, "three": 3, "four": 4, "other": 2}

PARTICIPANTS_RE = re.compile(
    r"(\d+)\s*(?:people|persons|guests|friends|participants|attendees|pax|kids|colleagues|of us|travell?ers)",
    re.IGNORECASE,
)
BUDGET_RE = re.compile(
    r"(?:budget(?: of| is)?\s*[$€₪]?\s*(\d[\d,]*))|(?:[$€₪]\s*(\d[\d,]*))|(?:(\d[\d,]*)\s*(?:dollars|usd|eur|euros|nis|shekels))",
    re.IGNORECASE,
)
TITLE_RE = re.compile(r"(?:called|named|titled)\s+[\"“']?([^\"”'.,!?]+)", re.IGNORECASE)
QUOTED_RE = re.compile(r"[\"“]([^\"”]{3,80})[\"”]")
IN_CITY_RE = re.compile(r"\bin\s+([A-Z][a-z]+(?:\s[A-Z][a-z]+){0,2})")
NOT_PLACES = {
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december", "monday", "tuesday",
    "wednesday", "thursday", "friday", "saturday", "sunday",
}
ISO_DATE_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})(?:[T ](\d{1,2}:\d{2}))?\b")
DMY_DATE_RE = re.compile(r"\b(\d{1,2})[/.](\d{1,2})[/.](\d{4})\b")
TIME_RE = re.compile(r"\bat (\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b", re.IGNORECASE)


def empty_extraction() -> dict:
    return {field: None for field in EXTRACTION_FIELDS}


def extract_keywords(text: str, today: Optional[date] = None) -> dict:
    """
    Extract event attributes from free text with plain pattern matching.

    Args:
        text: The user's message
        today: Reference date for relative dates ("tomorrow")

    Returns:
        Dict with every key of EXTRACTION_FIELDS; None where nothing was found
    """
    result = empty_extraction()
    if not text or not text.strip():
        return result

    today = today or date.today()
    lower = text.lower()

    profile = get_catalog().match(text)
    if profile is not None:
        result["event_type"] = profile.key

    match = PARTICIPANTS_RE.search(text)
    if match:
        result["participants"] = int(match.group(1))

    for city in KNOWN_CITIES:
        if re.search(rf"\b{re.escape(city.lower())}\b", lower):
            result["destination"] = city
            result["city"] = city
            break
    else:
        match = IN_CITY_RE.search(text)
        if match and match.group(1).split()[0].lower() not in NOT_PLACES:
            result["destination"] = match.group(1)

    for keyword, place_type in PLACE_KEYWORDS:
        if re.search(rf"\b{re.escape(keyword)}\b", lower):
            result["place_type"] = place_type
            break

    accommodation = any(w in lower for w in ("hotel", "accommodation", "flight", "overnight"))
    if accommodation or result["event_type"] == "trip":
        result["needs_accommodation"] = True

    for pattern, audience in AUDIENCE_KEYWORDS:
        if re.search(pattern, lower):
            result["for_whom"] = audience
            break

    for words, style in STYLE_KEYWORDS:
        if any(re.search(rf"\b{re.escape(w)}\b", lower) for w in words):
            result["style"] = style
            break

    if re.search(r"\bpublic\b|\bopen to everyone\b", lower):
        result["privacy"] = "public"
    elif re.search(r"\bprivate\b|\binvite[- ]only\b", lower):
        result["privacy"] = "private"

    match = BUDGET_RE.search(text)
    if match:
        amount = next(g for g in match.groups() if g)
        result["budget"] = amount.replace(",", "")

    match = TITLE_RE.search(text) or QUOTED_RE.search(text)
    if match:
        result["title"] = match.group(1).strip()

    _extract_recurrence(lower, result)
    _extract_date(text, lower, today, result)

    keywords = []
    if result["needs_accommodation"]:
        keywords.append("hotels")
    if result["place_type"]:
        keywords.append(result["place_type"])
    result["keywords"] = keywords or None

    return result


def _extract_recurrence(lower: str, result: dict):
    if not re.search(r"\b(every|daily|weekly|monthly|yearly|annual|annually|recurring)\b", lower):
        return
    result["is_recurring"] = True
    for pattern, recurrence in RECURRENCE_KEYWORDS:
        if re.search(pattern, lower):
            result["recurrence_pattern"] = recurrence
            break
    match = re.search(r"\bevery (\d+|two|three|four|other) (day|week|month|year)s?\b", lower)
    if match:
        token = match.group(1)
        result["recurrence_interval"] = int(token) if token.isdigit() else NUMBER_WORDS[token]


def _extract_date(text: str, lower: str, today: date, result: dict):
    day: Optional[date] = None
    clock: Optional[tuple[int, int]] = None

    match = ISO_DATE_RE.search(text)
    if match:
        try:
            day = date.fromisoformat(match.group(1))
        except ValueError:
            day = None
        if match.group(2):
            hours, minutes = match.group(2).split(":")
            clock = (int(hours), int(minutes))
    if day is None:
        match = DMY_DATE_RE.search(text)
        if match:
            try:
                day = date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
            except ValueError:
                day = None
    if day is None:
        if re.search(r"\btomorrow\b", lower):
            day = today + timedelta(days=1)
        elif re.search(r"\btoday\b|\btonight\b", lower):
            day = today
        elif re.search(r"\bnext week\b", lower):
            result["date_info"] = "next week"

    if clock is None:
        match = TIME_RE.search(text)
        if match:
            hours = int(match.group(1))
            minutes = int(match.group(2) or 0)
            meridiem = (match.group(3) or "").lower()
            if meridiem == "pm" and hours < 12:
                hours += 12
            elif meridiem == "am" and hours == 12:
                hours = 0
            if hours < 24 and minutes < 60:
                clock = (hours, minutes)

    if day is not None:
        hours, minutes = clock or (0, 0)
        result["event_date"] = datetime(day.year, day.month, day.day, hours, minutes).isoformat()
        result["date_info"] = result["date_info"] or day.isoformat()
