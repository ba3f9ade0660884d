"""
In-memory source of truth for the trip being planned or edited.

The manager keeps two views of one model: the flat ``locations`` list and
the day-grouped ``trip_days`` list. Every mutation updates both views with
no await in between, so an observer on the event loop never sees them
disagree. Background photo lookups report back through ``dispatch``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable

from tripplanner.core.errors import (
    NetworkError,
    ParseError,
    PersistenceError,
    TripImportError,
)
from tripplanner.core.fun_facts import fetch_fun_facts
from tripplanner.core.geo import MapRegion, new_id
from tripplanner.core.photo_enrichment import PhotoEnricher, SetPhotoURL, SetPlaceID, StateCommand
from tripplanner.core.places_service import PlacesService
from tripplanner.core.repository import TripRepository
from tripplanner.core.response_parser import parse_trip_response
from tripplanner.core.schemas import Location, Trip, TripDay, TripSnapshot, utc_now
from tripplanner.core.settings import get_settings
from tripplanner.core.trip_codec import build_export_envelope, decode_import_envelope

logger = logging.getLogger(__name__)

Subscriber = Callable[[TripSnapshot], None]


def build_plan_prompt(destination: str, number_of_days: int) -> str:
    return f"""Plan a detailed trip to {destination} with the following requirements:
1. Create a {number_of_days}-day itinerary
2. For each day, recommend 3-5 locations to visit
3. Include brief descriptions for each location
4. Provide exact coordinates (latitude and longitude) for each location
5. IMPORTANT: For each location, include a precise and valid Google Maps place_id that can be used with the Places API

Format the response as a JSON object with this structure:
{{
  "days": [
    {{
      "day": 1,
      "locations": [
        {{
          "name": "Location name",
          "description": "Brief description",
          "latitude": 00.0000,
          "longitude": 00.0000,
          "place_id": "GoogleMapsPlaceIDString"
        }}
      ]
    }}
  ]
}}

Important: Return only the valid JSON with no other text. For the place_id, use accurate Google Maps Place IDs for each location."""


def move_items(items: list[Any], source_indices: Iterable[int], destination: int) -> list[Any]:
    """Move the items at ``source_indices`` so they land before ``destination``.

    ``destination`` is an offset into the original list, as in a drag-and-drop
    list where dropping at ``len(items)`` means "move to the end".
    """
    sources = sorted({i for i in source_indices if 0 <= i < len(items)})
    moving = [items[i] for i in sources]
    remaining = [item for i, item in enumerate(items) if i not in sources]
    insert_at = destination - sum(1 for i in sources if i < destination)
    insert_at = max(0, min(insert_at, len(remaining)))
    return remaining[:insert_at] + moving + remaining[insert_at:]


class TripStateManager:
    def __init__(
        self,
        repository: TripRepository,
        provider: Any | None = None,
        places: PlacesService | None = None,
    ):
        self.repository = repository
        self.provider = provider
        self.enricher = PhotoEnricher(places, self.dispatch) if places is not None else None

        self.destination = ""
        self.number_of_days = 3
        self.locations: list[Location] = []
        self.trip_days: list[TripDay] = []
        self.region = MapRegion()
        self.is_loading = False
        self.error: str | None = None

        self._subscribers: list[Subscriber] = []
        self._tasks: set[asyncio.Task] = set()

    # Observation
    @property
    def active_trip_id(self) -> str | None:
        return self.repository.get_active_trip_id()

    def snapshot(self) -> TripSnapshot:
        try:
            active_trip_id = self.active_trip_id
        except PersistenceError as e:
            logger.warning("[TripState] Active trip pointer unavailable: %s", e)
            active_trip_id = None

        return TripSnapshot(
            destination=self.destination,
            number_of_days=self.number_of_days,
            locations=self.locations,
            trip_days=self.trip_days,
            region=self.region,
            is_loading=self.is_loading,
            error=self.error,
            active_trip_id=active_trip_id,
        ).model_copy(deep=True)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register for a snapshot after every committed change. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("[TripState] Subscriber failed")

    # Lookups
    def _find_location(self, location_id: str) -> Location | None:
        return next((loc for loc in self.locations if loc.id == location_id), None)

    def _find_day(self, day: int) -> TripDay | None:
        return next((group for group in self.trip_days if group.day == day), None)

    def _find_grouped(self, location_id: str) -> tuple[TripDay, Location] | None:
        for group in self.trip_days:
            for loc in group.locations:
                if loc.id == location_id:
                    return group, loc
        return None

    def _update_location(self, location_id: str, **changes: Any) -> bool:
        """Apply field changes to a location in both views. No-op for unknown IDs."""
        flat = self._find_location(location_id)
        grouped = self._find_grouped(location_id)
        if flat is None and grouped is None:
            return False

        for field_name, value in changes.items():
            if flat is not None:
                setattr(flat, field_name, value)
            if grouped is not None:
                setattr(grouped[1], field_name, value)
        return True

    def _resequence(self, group: TripDay) -> None:
        for index, loc in enumerate(group.locations):
            loc.order = index
            flat = self._find_location(loc.id)
            if flat is not None:
                flat.order = index

    def _replace_state(
        self,
        destination: str,
        number_of_days: int,
        locations: list[Location],
        trip_days: list[TripDay],
        region: MapRegion,
    ) -> None:
        # Everything is built by the caller first; the swap itself has no awaits
        self.destination = destination
        self.number_of_days = number_of_days
        self.locations = locations
        self.trip_days = trip_days
        self.region = region
        self.error = None

    # Single apply point for background results
    def dispatch(self, command: StateCommand) -> bool:
        if isinstance(command, SetPhotoURL):
            applied = self._update_location(command.location_id, photo_url=command.photo_url)
        elif isinstance(command, SetPlaceID):
            applied = self._update_location(command.location_id, place_id=command.place_id)
        else:
            raise TypeError(f"Unknown state command: {command!r}")

        if applied:
            self._notify()
        else:
            logger.debug("[TripState] Dropping stale %s", type(command).__name__)
        return applied

    # Planning
    async def plan_trip(self, destination: str, number_of_days: int) -> bool:
        """
        Request a plan and replace the current trip with it.

        On failure the user-visible ``error`` is set and the existing trip
        is left untouched.
        """
        if not destination:
            return False

        self.is_loading = True
        self.error = None
        self._notify()

        try:
            if self.provider is None:
                raise NetworkError("No generative-text provider configured")
            raw_text = await self.provider.generate_async(build_plan_prompt(destination, number_of_days))
            parsed = parse_trip_response(raw_text)
        except (NetworkError, ParseError) as e:
            logger.warning("[TripState] Planning %s failed: %s", destination, e)
            self.error = str(e)
            self.is_loading = False
            self._notify()
            return False

        self.is_loading = False
        self._replace_state(
            destination,
            number_of_days,
            parsed.locations,
            parsed.trip_days,
            MapRegion.centered_on(parsed.locations[0].coordinate),
        )
        # A fresh plan is unsaved until the next save creates its record
        try:
            self.repository.set_active_trip_id(None)
        except PersistenceError as e:
            logger.error("[TripState] Failed to clear active trip: %s", e)
        self._notify()

        self._start_enrichment(parsed.locations)
        return True

    def _start_enrichment(self, locations: list[Location]) -> None:
        if self.enricher is None:
            return
        for location in locations:
            task = asyncio.create_task(self.enricher.enrich(location.model_copy()))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def wait_for_enrichment(self) -> None:
        """Wait until every in-flight photo lookup has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def fun_facts(self, destination: str | None = None) -> list[str]:
        target = destination
        if not target:
            try:
                active = self.repository.get_active_trip()
            except PersistenceError as e:
                logger.warning("[TripState] Active trip unavailable for fun facts: %s", e)
                active = None
            target = active.destination if active else self.destination
        if self.provider is None:
            return []
        return await fetch_fun_facts(self.provider, target)

    # Editing
    def move_location(self, source_indices: Iterable[int], destination_index: int, day: int) -> bool:
        """Reorder locations within one day-group."""
        group = self._find_day(day)
        if group is None:
            return False

        group.locations = move_items(group.locations, source_indices, destination_index)
        self._resequence(group)
        self._notify()
        return True

    def move_location_to_day(self, location_id: str, target_day: int) -> bool:
        """Move a location to the end of another day-group, then save."""
        target = self._find_day(target_day)
        location = self._find_location(location_id)
        if target is None or location is None:
            return False

        grouped = self._find_grouped(location_id)
        if grouped is not None:
            source = grouped[0]
            source.locations = [loc for loc in source.locations if loc.id != location_id]
            self._resequence(source)

        new_order = len(target.locations)
        location.day = target_day
        location.order = new_order
        target.locations.append(location.model_copy())
        self._notify()

        self.save_current_trip()
        return True

    def update_location_details(self, location_id: str, name: str, description: str) -> bool:
        applied = self._update_location(location_id, name=name, description=description)
        if applied:
            self._notify()
        return applied

    # Persistence
    def save_current_trip(self, surface_errors: bool = True) -> Trip | None:
        """Update the active trip, or create one if there is none and the trip is non-empty."""
        try:
            active_id = self.active_trip_id
            if active_id is None:
                if not self.locations:
                    return None
                return self.save_trip_as_new(self.destination, surface_errors=surface_errors)

            return self.repository.save(
                active_id,
                self.destination,
                self.number_of_days,
                self.region,
                self.locations,
                self.trip_days,
            )
        except PersistenceError as e:
            self._report_save_failure(e, surface_errors)
            return None

    def save_trip_as_new(self, name: str = "", surface_errors: bool = True) -> Trip | None:
        if not self.locations:
            return None

        trip_id = new_id()
        try:
            trip = self.repository.save(
                trip_id,
                name or self.destination,
                self.number_of_days,
                self.region,
                self.locations,
                self.trip_days,
            )
            self.repository.set_active_trip_id(trip_id)
        except PersistenceError as e:
            self._report_save_failure(e, surface_errors)
            return None

        self._notify()
        return trip

    def _report_save_failure(self, error: PersistenceError, surface: bool) -> None:
        logger.error("[TripState] Failed to save trip: %s", error)
        if surface:
            self.error = f"Failed to save trip: {error}"
            self._notify()

    def load_trip(self, trip_id: str) -> bool:
        try:
            bundle = self.repository.load(trip_id)
            self.repository.set_active_trip_id(trip_id)
        except PersistenceError as e:
            logger.warning("[TripState] %s", e)
            self.error = f"Failed to load trip: {e}"
            self._notify()
            return False

        self._replace_state(
            bundle.trip.destination,
            bundle.trip.number_of_days,
            bundle.locations,
            bundle.trip_days,
            bundle.trip.map_region,
        )
        self._notify()
        logger.info("[TripState] Loaded trip: %s", bundle.trip.destination)
        return True

    def load_last_active_trip(self) -> bool:
        try:
            trip_id = self.active_trip_id or next(iter(self.repository.trip_ids()), None)
        except PersistenceError as e:
            logger.error("[TripState] Could not restore last trip: %s", e)
            return False
        if trip_id is None:
            return False
        return self.load_trip(trip_id)

    def list_trips(self) -> list[Trip]:
        return self.repository.list_trips()

    def delete_trip(self, trip_id: str) -> bool:
        try:
            self.repository.delete(trip_id)
        except PersistenceError as e:
            self.error = f"Failed to delete trip: {e}"
            self._notify()
            return False
        self._notify()
        return True

    def rename_trip(self, trip_id: str, new_name: str) -> bool:
        try:
            self.repository.rename(trip_id, new_name)
        except (ValueError, PersistenceError):
            self.error = "Cannot rename trip: Trip not found or invalid name"
            self._notify()
            return False

        if self.active_trip_id == trip_id:
            self.destination = new_name
        self._notify()
        return True

    def duplicate_trip(self, trip_id: str, new_name: str | None = None) -> Trip | None:
        try:
            return self.repository.duplicate(trip_id, new_name)
        except PersistenceError as e:
            self.error = f"Failed to duplicate trip: {e}"
            self._notify()
            return None

    def create_new_empty_trip(self, destination: str = "") -> None:
        self._replace_state(destination, self.number_of_days, [], [], MapRegion())
        try:
            self.repository.set_active_trip_id(None)
        except PersistenceError as e:
            logger.error("[TripState] Failed to clear active trip: %s", e)
        self._notify()

    def get_trip_id_by_name(self, name: str) -> str | None:
        return self.repository.get_trip_id_by_name(name)

    def get_active_trip(self) -> Trip | None:
        return self.repository.get_active_trip()

    # Auto-save
    def save_before_background(self) -> None:
        if self.locations:
            self.save_current_trip(surface_errors=False)

    async def run_autosave(self, interval: float | None = None) -> None:
        """Save every ``interval`` seconds while the trip has locations. Runs until cancelled."""
        interval = interval or get_settings().autosave_interval_seconds
        while True:
            await asyncio.sleep(interval)
            if not self.locations:
                continue
            try:
                self.save_current_trip(surface_errors=False)
            except Exception:
                # Keep the loop alive; the next tick retries
                logger.exception("[TripState] Auto-save failed")

    # Export / import
    def export_trip(self, trip_id: str | None = None) -> bytes | None:
        """Serialize a saved trip (the active one by default) or the unsaved in-memory trip."""
        try:
            target_id = trip_id or self.active_trip_id
            if target_id is None:
                if not self.locations:
                    return None
                return build_export_envelope(
                    self.destination,
                    utc_now(),
                    self.locations,
                    self.trip_days,
                    self.region,
                    number_of_days=self.number_of_days,
                )

            trip, locations_data, days_data = self.repository.read_raw_records(target_id)
        except PersistenceError as e:
            self.error = f"Failed to export trip: {e}"
            self._notify()
            return None

        return build_export_envelope(
            trip.destination,
            trip.created_date,
            locations_data,
            days_data,
            trip.map_region,
            last_modified_date=trip.last_modified_date,
            number_of_days=trip.number_of_days,
        )

    def import_trip(self, data: bytes | str | dict[str, Any]) -> bool:
        """Persist an exported trip under a fresh ID, make it active and load it."""
        try:
            imported = decode_import_envelope(data)
            trip = Trip(
                id=new_id(),
                destination=imported.destination,
                created_date=imported.created_date,
                last_modified_date=imported.last_modified_date,
                map_region=imported.region or self.region,
                number_of_days=imported.number_of_days,
            )
            self.repository.write_records(trip, imported.locations, imported.trip_days)
            self.repository.set_active_trip_id(trip.id)
        except (TripImportError, PersistenceError) as e:
            logger.warning("[TripState] Import failed: %s", e)
            self.error = f"Failed to import trip: {e}"
            self._notify()
            return False

        self._replace_state(
            trip.destination,
            trip.number_of_days,
            imported.locations,
            imported.trip_days,
            trip.map_region,
        )
        self._notify()
        logger.info("[TripState] Imported trip: %s", trip.destination)
        return True
