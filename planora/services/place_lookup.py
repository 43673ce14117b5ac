"""
Place Lookup Service.
Finds candidate venues on OpenStreetMap (Nominatim). Best-effort: any
failure yields an empty list.
"""
import logging
from typing import Optional

import httpx

from ..config import settings
from ..models.event_state import Place

logger = logging.getLogger(__name__)


class PlaceLookupService:
    """Service to look up venues by kind and city."""

    def __init__(
        self,
        url: Optional[str] = None,
        limit: Optional[int] = None,
        enabled: Optional[bool] = None,
        timeout: float = 10.0
    ):
        self.url = url or settings.place_lookup_url
        self.limit = limit or settings.place_lookup_limit
        self.enabled = settings.place_lookup_enabled if enabled is None else enabled
        self.timeout = timeout
        # Nominatim requires a user-agent
        self.headers = {"User-Agent": "PlanoraEventPlanner/1.0"}

    async def search(self, place_type: Optional[str], city: Optional[str]) -> list[Place]:
        """
        Search for places of a kind in a city.

        Args:
            place_type: e.g. "restaurant"; "recommend" or None searches the city only
            city: City or region name

        Returns:
            Up to `limit` places, or [] if disabled or the lookup fails
        """
        if not self.enabled or not city:
            return []

        query = city if not place_type or place_type == "recommend" else f"{place_type} in {city}"
        params = {
            "q": query,
            "format": "json",
            "addressdetails": 0,
            "limit": self.limit
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(self.url, params=params, headers=self.headers)
                response.raise_for_status()
                results = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"OSM Error: {e}")
                return []

        if not isinstance(results, list):
            return []
        places = (self._to_place(r) for r in results if isinstance(r, dict))
        return [place for place in places if place is not None]

    def _to_place(self, result: dict) -> Optional[Place]:
        address = result.get("display_name") or ""
        name = result.get("name") or address.split(",")[0].strip()
        if not name:
            return None
        try:
            lat = float(result["lat"]) if result.get("lat") else None
            lon = float(result["lon"]) if result.get("lon") else None
        except (TypeError, ValueError):
            lat = lon = None
        return Place(
            name=name,
            address=address,
            place_id=str(result["place_id"]) if result.get("place_id") else None,
            lat=lat,
            lon=lon,
        )


# Global place lookup instance
place_lookup: Optional[PlaceLookupService] = None


def get_place_lookup() -> PlaceLookupService:
    """Get or create the global place lookup service."""
    global place_lookup
    if place_lookup is None:
        place_lookup = PlaceLookupService()
    return place_lookup
