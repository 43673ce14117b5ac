"""Tests for the persistence adapters."""
import httpx
import pytest

from planora.exceptions import PersistenceError
from planora.services.orchestrator import CreationOrchestrator
from planora.services.persistence import HttpEntityStore, InMemoryEntityStore
from test_orchestrator import PLAN, STATE


def http_store(handler) -> HttpEntityStore:
    return HttpEntityStore("https://api.example.test/", api_key="secret", transport=httpx.MockTransport(handler))


class TestHttpEntityStore:
    """Test the REST adapter against a mocked transport."""

    @pytest.mark.asyncio
    async def test_returns_created_id(self):
        """The id from the response body is returned."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": 42})

        entity_id = await http_store(handler).create("Event", {"title": "Picnic"})

        assert entity_id == "42"
        assert str(seen[0].url) == "https://api.example.test/entities/Event"
        assert seen[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_missing_id_raises(self):
        """A 2xx answer without an id is an error, not a success."""
        store = http_store(lambda request: httpx.Response(200, json={"status": "ok"}))

        with pytest.raises(PersistenceError):
            await store.create("Task", {"title": "Book the venue"})

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        """Non-2xx answers surface as httpx errors."""
        store = http_store(lambda request: httpx.Response(500))

        with pytest.raises(httpx.HTTPStatusError):
            await store.create("Event", {"title": "Picnic"})

    @pytest.mark.asyncio
    async def test_dependents_without_id_count_as_failed(self):
        """Dependents answered without an id end up in the failed counts."""
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/Event"):
                return httpx.Response(201, json={"id": "evt-1"})
            return httpx.Response(200, json={})

        result = await CreationOrchestrator(http_store(handler)).create(STATE, PLAN)

        assert result.event_id == "evt-1"
        assert result.created == {}
        assert result.failed == {"Task": 3, "ItineraryItem": 2}
        assert result.warnings == 5


class TestInMemoryEntityStore:

    @pytest.mark.asyncio
    async def test_records_entities(self):
        """Created entities are kept per kind with fresh ids."""
        store = InMemoryEntityStore()

        first = await store.create("Task", {"title": "a"})
        second = await store.create("Task", {"title": "b"})

        assert first != second
        assert store.count("Task") == 2
        assert store.count("Event") == 0
        assert [t["title"] for t in store.all("Task")] == ["a", "b"]
