"""
Geographic primitives and identifier helpers shared by the trip model.
"""

import uuid

from pydantic import BaseModel

DEFAULT_CENTER_LATITUDE = 37.7749
DEFAULT_CENTER_LONGITUDE = -122.4194
DEFAULT_SPAN = 0.1
# Span used when the map is re-centered on a freshly planned trip
FOCUSED_SPAN = 0.05


def new_id() -> str:
    """Return a new process-unique identifier."""
    return str(uuid.uuid4())


class Coordinate(BaseModel):
    # Range is not validated; garbage in is tolerated
    latitude: float
    longitude: float


class MapRegion(BaseModel):
    """Map viewport stored as a center point plus a latitude/longitude span."""

    center_latitude: float = DEFAULT_CENTER_LATITUDE
    center_longitude: float = DEFAULT_CENTER_LONGITUDE
    latitude_delta: float = DEFAULT_SPAN
    longitude_delta: float = DEFAULT_SPAN

    @property
    def center(self) -> Coordinate:
        return Coordinate(latitude=self.center_latitude, longitude=self.center_longitude)

    @classmethod
    def centered_on(cls, coordinate: Coordinate, span: float = FOCUSED_SPAN) -> "MapRegion":
        return cls(
            center_latitude=coordinate.latitude,
            center_longitude=coordinate.longitude,
            latitude_delta=span,
            longitude_delta=span,
        )
