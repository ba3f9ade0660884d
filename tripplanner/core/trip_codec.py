"""
Portable export envelope for a trip.

Envelope layout::

    {
      "destination": str,
      "createdDate": float,            # epoch seconds
      "lastModifiedDate": float,       # optional
      "numberOfDays": int,             # optional
      "locations": <encoded>,
      "tripDays": <encoded>,
      "region": {"centerLatitude", "centerLongitude",
                 "latitudeDelta", "longitudeDelta"}
    }

``locations`` and ``tripDays`` may arrive either as already-encoded JSON
bytes or as plain nested lists/dicts. Both are normalized to canonical
bytes before being decoded into the domain model.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Union

from pydantic import BaseModel, ValidationError

from tripplanner.core.errors import TripImportError
from tripplanner.core.geo import MapRegion
from tripplanner.core.schemas import Location, LocationList, TripDay, TripDayList, utc_now

EncodedPayload = Union[bytes, bytearray, str, list, dict]


@dataclass
class ImportedTrip:
    destination: str
    created_date: datetime
    last_modified_date: datetime
    locations: list[Location]
    trip_days: list[TripDay]
    region: MapRegion | None
    number_of_days: int


def normalize_payload(value: EncodedPayload | None) -> bytes:
    """Coerce an encoded payload to its canonical byte form."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if value is None:
        raise ValueError("payload is missing")
    return json.dumps(value).encode("utf-8")


def _to_generic(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview, str)):
        return json.loads(normalize_payload(value))
    return [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in value]


def _epoch(value: datetime) -> float:
    return value.timestamp()


def _from_epoch(value: Any) -> datetime:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return utc_now()


def build_export_envelope(
    destination: str,
    created_date: datetime,
    locations: list[Location] | bytes,
    trip_days: list[TripDay] | bytes,
    region: MapRegion,
    last_modified_date: datetime | None = None,
    number_of_days: int | None = None,
) -> bytes:
    """Serialize a trip into a single JSON envelope."""
    envelope: dict[str, Any] = {
        "destination": destination,
        "createdDate": _epoch(created_date),
        "locations": _to_generic(locations),
        "tripDays": _to_generic(trip_days),
        "region": {
            "centerLatitude": region.center_latitude,
            "centerLongitude": region.center_longitude,
            "latitudeDelta": region.latitude_delta,
            "longitudeDelta": region.longitude_delta,
        },
    }
    if last_modified_date is not None:
        envelope["lastModifiedDate"] = _epoch(last_modified_date)
    if number_of_days is not None:
        envelope["numberOfDays"] = number_of_days

    return json.dumps(envelope).encode("utf-8")


def _decode_region(value: Any) -> MapRegion | None:
    if not isinstance(value, dict):
        return None
    fields = ("centerLatitude", "centerLongitude", "latitudeDelta", "longitudeDelta")
    numbers = [value.get(f) for f in fields]
    if not all(isinstance(n, (int, float)) and not isinstance(n, bool) and math.isfinite(n) for n in numbers):
        return None
    return MapRegion(
        center_latitude=numbers[0],
        center_longitude=numbers[1],
        latitude_delta=numbers[2],
        longitude_delta=numbers[3],
    )


def _check_views(locations: list[Location], trip_days: list[TripDay]) -> None:
    """Reject envelopes whose flat and day-grouped lists describe different trips."""
    flat = {loc.id: (loc.day, loc.order) for loc in locations}
    grouped: dict[str, tuple[int, int]] = {}
    for group in trip_days:
        if [loc.order for loc in group.locations] != list(range(len(group.locations))):
            raise TripImportError(f"Invalid location order in day {group.day}")
        for loc in group.locations:
            if loc.day != group.day or loc.id in grouped:
                raise TripImportError("Locations and trip days do not match")
            grouped[loc.id] = (loc.day, loc.order)

    if len(flat) != len(locations) or flat != grouped:
        raise TripImportError("Locations and trip days do not match")


def decode_import_envelope(data: bytes | str | dict[str, Any]) -> ImportedTrip:
    """
    Reconstruct a trip from an export envelope.

    Args:
        data: Envelope as JSON bytes/text, or an already-decoded dict

    Raises:
        TripImportError: on a malformed envelope, a missing destination, or
            locations/trip days that cannot be coerced, decoded or matched
            against each other
    """
    if isinstance(data, dict):
        envelope = data
    else:
        try:
            envelope = json.loads(data)
        except (TypeError, ValueError) as e:
            raise TripImportError("Invalid import data format") from e
    if not isinstance(envelope, dict):
        raise TripImportError("Invalid import data format")

    destination = envelope.get("destination")
    if not isinstance(destination, str):
        raise TripImportError("Missing destination in import data")

    try:
        locations_data = normalize_payload(envelope.get("locations"))
    except (TypeError, ValueError) as e:
        raise TripImportError("Invalid locations data format") from e
    try:
        trip_days_data = normalize_payload(envelope.get("tripDays"))
    except (TypeError, ValueError) as e:
        raise TripImportError("Invalid trip days data format") from e

    try:
        locations = LocationList.validate_json(locations_data)
        trip_days = TripDayList.validate_json(trip_days_data)
    except ValidationError as e:
        raise TripImportError(f"Failed to decode imported trip: {e}") from e
    _check_views(locations, trip_days)

    number_of_days = envelope.get("numberOfDays")
    if not isinstance(number_of_days, int) or isinstance(number_of_days, bool) or number_of_days < 1:
        number_of_days = len(trip_days) or 3

    return ImportedTrip(
        destination=destination,
        created_date=_from_epoch(envelope.get("createdDate")),
        last_modified_date=_from_epoch(envelope.get("lastModifiedDate")),
        locations=locations,
        trip_days=trip_days,
        region=_decode_region(envelope.get("region")),
        number_of_days=number_of_days,
    )
