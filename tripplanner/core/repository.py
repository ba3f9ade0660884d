from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from tripplanner.core.errors import PersistenceError, TripNotFoundError
from tripplanner.core.geo import MapRegion, new_id
from tripplanner.core.kv_store import KeyValueStore
from tripplanner.core.schemas import (
    Location,
    LocationList,
    Trip,
    TripDay,
    TripDayList,
    utc_now,
)

logger = logging.getLogger(__name__)

SAVED_TRIPS_KEY = "savedTripsIDs"
ACTIVE_TRIP_KEY = "activeTripID"
TRIP_PREFIX = "trip_"


def trip_key(trip_id: str) -> str:
    return f"{TRIP_PREFIX}{trip_id}"


def locations_key(trip_id: str) -> str:
    return f"{TRIP_PREFIX}{trip_id}_locations"


def days_key(trip_id: str) -> str:
    return f"{TRIP_PREFIX}{trip_id}_days"


@dataclass
class TripBundle:
    trip: Trip
    locations: list[Location]
    trip_days: list[TripDay]


class TripRepository:
    """Multi-trip persistence: an index list, an active pointer and three records per trip."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # Index and active pointer
    def trip_ids(self) -> list[str]:
        raw = self.store.get(SAVED_TRIPS_KEY)
        if not raw:
            return []
        try:
            ids = json.loads(raw)
        except ValueError:
            logger.warning("[Repository] Trip index is corrupt, treating as empty")
            return []
        return [i for i in ids if isinstance(i, str)] if isinstance(ids, list) else []

    def _set_trip_ids(self, trip_ids: list[str]) -> None:
        self.store.set(SAVED_TRIPS_KEY, json.dumps(trip_ids).encode("utf-8"))

    def _add_to_index(self, trip_id: str) -> None:
        trip_ids = self.trip_ids()
        if trip_id not in trip_ids:
            trip_ids.append(trip_id)
            self._set_trip_ids(trip_ids)

    def get_active_trip_id(self) -> str | None:
        raw = self.store.get(ACTIVE_TRIP_KEY)
        return raw.decode("utf-8") if raw else None

    def set_active_trip_id(self, trip_id: str | None) -> None:
        if trip_id is None:
            self.store.remove(ACTIVE_TRIP_KEY)
        else:
            self.store.set(ACTIVE_TRIP_KEY, trip_id.encode("utf-8"))

    # Records
    def get_trip(self, trip_id: str) -> Trip | None:
        """Decode a trip's metadata record, or None if missing or undecodable."""
        raw = self.store.get(trip_key(trip_id))
        if raw is None:
            return None
        try:
            return Trip.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("[Repository] Undecodable trip record %s: %s", trip_id, e)
            return None

    def write_records(
        self, trip: Trip, locations: list[Location], trip_days: list[TripDay]
    ) -> None:
        """Write all three records of a trip and make sure it is indexed."""
        try:
            trip_data = trip.model_dump_json().encode("utf-8")
            locations_data = LocationList.dump_json(locations)
            days_data = TripDayList.dump_json(trip_days)
        except (ValueError, TypeError) as e:
            raise PersistenceError(f"Failed to encode trip {trip.id}: {e}") from e

        self.store.set(trip_key(trip.id), trip_data)
        self.store.set(locations_key(trip.id), locations_data)
        self.store.set(days_key(trip.id), days_data)
        self._add_to_index(trip.id)

    def read_raw_records(self, trip_id: str) -> tuple[Trip, bytes, bytes]:
        """Return the metadata plus the encoded locations/days records verbatim."""
        trip = self.get_trip(trip_id)
        locations_data = self.store.get(locations_key(trip_id))
        days_data = self.store.get(days_key(trip_id))
        if trip is None or locations_data is None or days_data is None:
            raise TripNotFoundError(trip_id, "Trip not found")
        return trip, locations_data, days_data

    # Operations
    def save(
        self,
        trip_id: str,
        destination: str,
        number_of_days: int,
        map_region: MapRegion,
        locations: list[Location],
        trip_days: list[TripDay],
    ) -> Trip:
        """
        Create or update a trip.

        An existing record keeps its destination and created date; its
        modification date, map region and day count are refreshed.
        """
        existing = self.get_trip(trip_id)
        if existing is not None:
            trip = existing.model_copy(
                update={
                    "last_modified_date": utc_now(),
                    "map_region": map_region,
                    "number_of_days": number_of_days,
                }
            )
        else:
            now = utc_now()
            trip = Trip(
                id=trip_id,
                destination=destination,
                created_date=now,
                last_modified_date=now,
                map_region=map_region,
                number_of_days=number_of_days,
            )

        self.write_records(trip, locations, trip_days)
        logger.info("[Repository] Saved trip %s (%s)", trip.destination, trip.id)
        return trip

    def load(self, trip_id: str) -> TripBundle:
        """
        Decode all three records of a trip.

        Raises:
            TripNotFoundError: if any record is absent or undecodable
        """
        trip, locations_data, days_data = self.read_raw_records(trip_id)
        try:
            locations = LocationList.validate_json(locations_data)
        except ValidationError as e:
            raise TripNotFoundError(trip_id, "Failed to load locations") from e
        try:
            trip_days = TripDayList.validate_json(days_data)
        except ValidationError as e:
            raise TripNotFoundError(trip_id, "Failed to load trip days") from e

        return TripBundle(trip=trip, locations=locations, trip_days=trip_days)

    def list_trips(self) -> list[Trip]:
        """All decodable indexed trips, most recently modified first."""
        trips = [trip for trip in map(self.get_trip, self.trip_ids()) if trip is not None]
        return sorted(trips, key=lambda t: t.last_modified_date, reverse=True)

    def delete(self, trip_id: str) -> None:
        self._set_trip_ids([i for i in self.trip_ids() if i != trip_id])

        self.store.remove(trip_key(trip_id))
        self.store.remove(locations_key(trip_id))
        self.store.remove(days_key(trip_id))

        if self.get_active_trip_id() == trip_id:
            self.set_active_trip_id(None)

        logger.info("[Repository] Deleted trip %s", trip_id)

    def rename(self, trip_id: str, new_name: str) -> Trip:
        if not new_name:
            raise ValueError("Cannot rename trip: invalid name")
        trip = self.get_trip(trip_id)
        if trip is None:
            raise TripNotFoundError(trip_id, "Cannot rename trip: Trip not found")

        trip = trip.model_copy(update={"destination": new_name, "last_modified_date": utc_now()})
        self.store.set(trip_key(trip_id), trip.model_dump_json().encode("utf-8"))
        logger.info("[Repository] Renamed trip %s to %s", trip_id, new_name)
        return trip

    def duplicate(self, trip_id: str, new_name: str | None = None) -> Trip:
        """Copy all three records under a fresh identifier. The copy is not made active."""
        original, locations_data, days_data = self.read_raw_records(trip_id)

        now = utc_now()
        copy = original.model_copy(
            update={
                "id": new_id(),
                "destination": new_name or f"{original.destination} (Copy)",
                "created_date": now,
                "last_modified_date": now,
            }
        )

        # Location payloads are copied verbatim, original location IDs included
        self.store.set(trip_key(copy.id), copy.model_dump_json().encode("utf-8"))
        self.store.set(locations_key(copy.id), locations_data)
        self.store.set(days_key(copy.id), days_data)
        self._add_to_index(copy.id)

        logger.info("[Repository] Duplicated trip %s as %s", original.destination, copy.destination)
        return copy

    def get_trip_id_by_name(self, name: str) -> str | None:
        for trip_id in self.trip_ids():
            trip = self.get_trip(trip_id)
            if trip is not None and trip.destination == name:
                return trip_id
        return None

    def get_active_trip(self) -> Trip | None:
        active_id = self.get_active_trip_id()
        return self.get_trip(active_id) if active_id else None
