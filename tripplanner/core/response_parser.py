"""
Turns raw generative-text output into the day/location model.

The model is asked for strict JSON but routinely wraps it in prose or
markdown fences, so the payload is sliced out before decoding and every
malformed entry is skipped instead of failing the whole plan.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from tripplanner.core.errors import ParseError
from tripplanner.core.schemas import Location, TripDay

logger = logging.getLogger(__name__)


@dataclass
class ParsedTrip:
    locations: list[Location] = field(default_factory=list)
    trip_days: list[TripDay] = field(default_factory=list)


def extract_json_payload(raw: str, opener: str = "{", closer: str = "}") -> str:
    """Slice from the first opener to the last closer, inclusive.

    Returns the text unchanged when no such pair exists.
    """
    start = raw.find(opener)
    end = raw.rfind(closer)
    if start != -1 and end != -1 and end > start:
        return raw[start : end + 1]
    return raw


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    # json.loads accepts NaN and Infinity, which cannot be stored
    return float(value) if math.isfinite(value) else None


def _parse_location(entry: Any, day: int, order: int) -> Location | None:
    if not isinstance(entry, dict):
        return None

    name = entry.get("name")
    description = entry.get("description")
    latitude = _as_float(entry.get("latitude"))
    longitude = _as_float(entry.get("longitude"))
    if not isinstance(name, str) or not isinstance(description, str):
        return None
    if latitude is None or longitude is None:
        return None

    place_id = entry.get("place_id")
    return Location(
        name=name,
        description=description,
        latitude=latitude,
        longitude=longitude,
        place_id=place_id if isinstance(place_id, str) and place_id else None,
        day=day,
        order=order,
    )


def parse_trip_response(raw_text: str) -> ParsedTrip:
    """
    Parse a plan response into a flat location list and day-groups.

    Args:
        raw_text: Free text expected to contain
            ``{"days": [{"day": int, "locations": [...]}]}``

    Returns:
        ParsedTrip whose orders are dense and zero-based within every day

    Raises:
        ParseError: if the payload is not JSON, has no ``days`` array, or
            yields zero usable locations
    """
    payload = extract_json_payload(raw_text)

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Failed to parse response: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("days"), list):
        raise ParseError("Failed to parse JSON structure")

    result = ParsedTrip()
    groups: dict[int, TripDay] = {}

    for day_entry in data["days"]:
        if not isinstance(day_entry, dict):
            continue
        day_number = _as_int(day_entry.get("day"))
        entries = day_entry.get("locations")
        if day_number is None or not isinstance(entries, list):
            logger.debug("[Parser] Skipping malformed day entry: %r", day_entry)
            continue

        # Repeated day numbers are folded into the first group for that day
        group = groups.get(day_number)
        if group is None:
            group = TripDay(day=day_number)
            groups[day_number] = group
            result.trip_days.append(group)

        for entry in entries:
            location = _parse_location(entry, day_number, len(group.locations))
            if location is None:
                logger.debug("[Parser] Skipping malformed location on day %d", day_number)
                continue
            result.locations.append(location)
            group.locations.append(location.model_copy())

    if not result.locations:
        raise ParseError("No locations found in the trip plan")

    logger.info(
        "[Parser] Parsed %d locations across %d days",
        len(result.locations),
        len(result.trip_days),
    )
    return result
