"""
Photo enrichment for planned locations.

Each location gets its own fallback chain:

1. Place details for the location's own place_id
2. Find-place text search by name (back-fills place_id, may embed photos)
3. Place details for the place_id found in step 2
4. Nearby search around the coordinate (back-fills place_id), then details
5. Stock image URL keyed by the location name

Nothing here mutates trip state directly. Results are sent as commands to
the state owner's dispatch function, which ignores identifiers that are no
longer part of the current trip.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Union

from tripplanner.core.places_service import (
    PlacesService,
    first_photo_reference,
    stock_image_url,
)
from tripplanner.core.schemas import Location

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetPhotoURL:
    location_id: str
    photo_url: str


@dataclass(frozen=True)
class SetPlaceID:
    location_id: str
    place_id: str


StateCommand = Union[SetPhotoURL, SetPlaceID]
Dispatch = Callable[[StateCommand], bool]


class PhotoEnricher:
    def __init__(self, places: PlacesService, dispatch: Dispatch):
        self.places = places
        self.dispatch = dispatch

    def _apply_photo(self, location: Location, place: dict[str, Any] | None, source: str) -> bool:
        reference = first_photo_reference(place)
        if not reference:
            return False
        photo_url = self.places.get_place_photo_url(reference)
        if not photo_url:
            return False
        logger.debug("[PhotoEnrichment] Photo for %s from %s", location.name, source)
        self.dispatch(SetPhotoURL(location.id, photo_url))
        return True

    async def _from_place_id(self, location: Location, place_id: str, source: str) -> bool:
        details = await self.places.get_place_details(place_id, fields="photos")
        return self._apply_photo(location, details, source)

    async def _from_candidate(self, location: Location, place: dict[str, Any] | None, source: str) -> bool:
        place_id = place.get("place_id") if place else None
        if not isinstance(place_id, str) or not place_id:
            return False

        logger.debug("[PhotoEnrichment] Found place ID via %s for %s: %s", source, location.name, place_id)
        self.dispatch(SetPlaceID(location.id, place_id))

        if self._apply_photo(location, place, source):
            return True
        return await self._from_place_id(location, place_id, f"{source} details")

    async def enrich(self, location: Location) -> None:
        """Run the fallback chain for one location. Never raises."""
        try:
            if location.place_id:
                details = await self.places.get_place_details(location.place_id, fields="name,photos")
                if self._apply_photo(location, details, "place details"):
                    return
                logger.info(
                    "[PhotoEnrichment] No photos in place details for %s, falling back to search",
                    location.name,
                )

            candidate = await self.places.find_place_from_text(location.name)
            if await self._from_candidate(location, candidate, "text search"):
                return

            nearby = await self.places.search_nearby(location.latitude, location.longitude)
            if await self._from_candidate(location, nearby, "nearby search"):
                return

            logger.info("[PhotoEnrichment] Using stock image for %s", location.name)
            self.dispatch(SetPhotoURL(location.id, stock_image_url(location.name)))
        except Exception:
            logger.exception("[PhotoEnrichment] Enrichment failed for %s", location.name)
