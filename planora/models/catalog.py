"""
Domain-type catalog.

Per-type prompt text, option lists and skip rules are data, kept in
resources/domain_types.json. Entries omit whatever they share with the
"default" profile; missing keys are filled from it.
"""
import json
import logging
import os
import re
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CATALOG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "resources", "domain_types.json")


class OptionSpec(BaseModel):
    id: str
    label: str
    icon: Optional[str] = None


class ItineraryTemplateEntry(BaseModel):
    time: str
    activity: str
    description: str = ""


class DomainProfile(BaseModel):
    """Everything the conversation needs to know about one domain type."""
    key: str
    label: str
    aliases: list[str] = Field(default_factory=list)
    audience_required: bool = True
    default_audience: Optional[str] = None
    typical_participants: dict[str, int] = Field(default_factory=dict)
    name_prompt: str = ""
    participants_prompt: str = ""
    audience_options: list[OptionSpec] = Field(default_factory=list)
    venue_options: list[OptionSpec] = Field(default_factory=list)
    suggested_tasks: list[str] = Field(default_factory=list)
    itinerary_template: list[ItineraryTemplateEntry] = Field(default_factory=list)

    def matches(self, text: str) -> bool:
        lowered = text.lower().replace("_", " ")
        if lowered == self.key.replace("_", " ") or lowered == self.label.lower():
            return True
        return any(re.search(rf"\b{re.escape(alias)}\b", lowered) for alias in self.aliases)


class DomainCatalog:
    """Lookup keyed by domain type, with a documented default entry."""

    def __init__(self, default: DomainProfile, profiles: list[DomainProfile]):
        self.default = default
        self.profiles = profiles
        self._by_key = {p.key: p for p in profiles}

    @classmethod
    def from_dict(cls, data: dict) -> "DomainCatalog":
        default_data = data.get("default", {})
        default = DomainProfile(**default_data)
        profiles = []
        for entry in data.get("types", []):
            merged = {**default_data, **entry}
            profiles.append(DomainProfile(**merged))
        return cls(default, profiles)

    @classmethod
    def load(cls, path: str = CATALOG_PATH) -> "DomainCatalog":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def get(self, key: str) -> Optional[DomainProfile]:
        return self._by_key.get(key)

    def lookup(self, domain_type: Optional[str]) -> DomainProfile:
        """Profile for a free-text or keyed domain type; default if nothing matches."""
        if not domain_type:
            return self.default
        if domain_type in self._by_key:
            return self._by_key[domain_type]
        for profile in self.profiles:
            if profile.matches(domain_type):
                return profile
        return self.default

    def match(self, text: str) -> Optional[DomainProfile]:
        """Profile mentioned anywhere in a sentence, or None."""
        for profile in self.profiles:
            if profile.matches(text):
                return profile
        return None

    def audience_required(self, domain_type: Optional[str]) -> bool:
        return self.lookup(domain_type).audience_required

    def type_options(self) -> list[OptionSpec]:
        """Buttons offered for the event type question."""
        featured = ["birthday", "wedding", "party", "work_event", "trip"]
        icons = {"birthday": "🎂", "wedding": "💍", "party": "🎊", "work_event": "🏢", "trip": "✈️"}
        options = [
            OptionSpec(id=f"type_{key}", label=self._by_key[key].label, icon=icons.get(key))
            for key in featured if key in self._by_key
        ]
        options.append(OptionSpec(id="type_other", label="Other", icon="📝"))
        return options


@lru_cache(maxsize=1)
def get_catalog() -> DomainCatalog:
    """Get the catalog loaded from the bundled resource file."""
    logger.debug(f"Loading domain catalog from {CATALOG_PATH}")
    return DomainCatalog.load()


def audience_required(domain_type: Optional[str]) -> bool:
    """Whether the target-audience question applies to this domain type."""
    return get_catalog().audience_required(domain_type)
