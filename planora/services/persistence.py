"""
Persistence adapters.
Each entity is created from a flat field map and identified by the returned id.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from ..config import settings
from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)


class EntityStore(ABC):
    """Create-only contract for Event and its dependents."""

    @abstractmethod
    async def create(self, entity: str, fields: dict) -> str:
        """Create one entity and return its id. Raises on failure."""


class InMemoryEntityStore(EntityStore):
    """Keeps created entities in process memory."""

    def __init__(self):
        self.records: dict[str, dict[str, dict]] = {}

    async def create(self, entity: str, fields: dict) -> str:
        entity_id = uuid.uuid4().hex
        self.records.setdefault(entity, {})[entity_id] = dict(fields)
        return entity_id

    def all(self, entity: str) -> list[dict]:
        return list(self.records.get(entity, {}).values())

    def count(self, entity: str) -> int:
        return len(self.records.get(entity, {}))


class HttpEntityStore(EntityStore):
    """Creates entities through a REST API: POST {base}/entities/{Entity}."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

    async def create(self, entity: str, fields: dict) -> str:
        """
        Raises:
            httpx.HTTPError: transport failure or non-2xx answer
            PersistenceError: the answer carried no id
        """
        url = f"{self.base_url}/entities/{entity}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(url, json=fields, headers=self.headers)
            response.raise_for_status()
            data = response.json()
        entity_id = data.get("id") if isinstance(data, dict) else None
        if not entity_id:
            raise PersistenceError(f"{entity} created without an id")
        logger.debug(f"Created {entity} {entity_id}")
        return str(entity_id)


# Global entity store instance
entity_store: Optional[EntityStore] = None


def get_entity_store() -> EntityStore:
    """Get or create the global entity store for the configured backend."""
    global entity_store
    if entity_store is None:
        if settings.persistence_backend == "http":
            entity_store = HttpEntityStore(
                settings.persistence_base_url,
                api_key=settings.persistence_api_key,
                timeout=settings.persistence_timeout_seconds,
            )
        else:
            entity_store = InMemoryEntityStore()
    return entity_store
