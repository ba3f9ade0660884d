"""
Google Places API integration for resolving location photos.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from tripplanner.core.settings import get_settings

logger = logging.getLogger(__name__)

PLACES_API_BASE = "https://maps.googleapis.com/maps/api/place"
STOCK_IMAGE_BASE = "https://source.unsplash.com/400x300/"


def first_photo_reference(place: dict[str, Any] | None) -> str | None:
    """Return the first photo_reference of a place payload, if any."""
    if not place:
        return None
    photos = place.get("photos")
    if not isinstance(photos, list) or not photos or not isinstance(photos[0], dict):
        return None
    reference = photos[0].get("photo_reference")
    return reference if isinstance(reference, str) and reference else None


def stock_image_url(name: str) -> str:
    """Generic image-search URL keyed by a location name. Not validated."""
    query = quote(name) if name else "landmark"
    return f"{STOCK_IMAGE_BASE}?{query}"


class PlacesService:
    """Async client for the Places details, find-place and nearby-search endpoints."""

    def __init__(
        self,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_width: int | None = None,
        timeout: float = 10.0,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY not found in environment variables")
        self.max_width = max_width or settings.photo_max_width
        self.timeout = timeout
        self._client = client

    async def _get_json(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any] | None:
        url = f"{PLACES_API_BASE}/{endpoint}/json"
        params = {**params, "key": self.api_key}
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("[Places] %s request failed: %s", endpoint, e)
            return None

        return data if isinstance(data, dict) else None

    async def get_place_details(
        self, place_id: str, fields: str = "name,photos"
    ) -> dict[str, Any] | None:
        """
        Get place details by ID.

        Args:
            place_id: Google Place ID
            fields: Comma-separated list of fields to request

        Returns:
            The ``result`` object, or None on transport failure or non-OK status
        """
        data = await self._get_json("details", {"place_id": place_id, "fields": fields})
        if not data:
            return None
        if data.get("status") != "OK":
            logger.info("[Places] Place details failed for %s: %s", place_id, data.get("status"))
            return None
        result = data.get("result")
        return result if isinstance(result, dict) else None

    async def find_place_from_text(self, query: str) -> dict[str, Any] | None:
        """Return the first find-place candidate for a free-text query."""
        data = await self._get_json(
            "findplacefromtext",
            {"input": query, "inputtype": "textquery", "fields": "photos,place_id"},
        )
        if not data or data.get("status") != "OK":
            return None
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return None
        return candidates[0] if isinstance(candidates[0], dict) else None

    async def search_nearby(
        self, latitude: float, longitude: float, radius: int | None = None
    ) -> dict[str, Any] | None:
        """Return the first place within ``radius`` meters of a coordinate."""
        radius = radius or get_settings().nearby_radius_meters
        data = await self._get_json(
            "nearbysearch", {"location": f"{latitude},{longitude}", "radius": radius}
        )
        if not data:
            return None
        results = data.get("results")
        if not isinstance(results, list) or not results:
            return None
        return results[0] if isinstance(results[0], dict) else None

    def get_place_photo_url(
        self, photo_reference: str, max_width: int | None = None
    ) -> str | None:
        """
        Get a photo URL from a photo reference.

        Args:
            photo_reference: Photo reference from Places API
            max_width: Maximum width in pixels (defaults to PHOTO_MAX_WIDTH)

        Returns:
            Photo URL string
        """
        if not photo_reference:
            return None

        return (
            f"{PLACES_API_BASE}/photo"
            f"?maxwidth={max_width or self.max_width}"
            f"&photo_reference={photo_reference}"
            f"&key={self.api_key}"
        )
