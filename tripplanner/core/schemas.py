from datetime import datetime, timezone

from pydantic import BaseModel, Field, TypeAdapter

from tripplanner.core.geo import Coordinate, MapRegion, new_id


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Location(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: str
    latitude: float = Field(..., allow_inf_nan=False)
    longitude: float = Field(..., allow_inf_nan=False)
    photo_url: str | None = Field(None, description="Resolved photo URL (set by enrichment)")
    place_id: str | None = Field(None, description="Google Place ID")
    day: int = Field(..., description="Owning day-group, 1-based")
    order: int = Field(..., description="Zero-based position within the day-group")

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class TripDay(BaseModel):
    id: str = Field(default_factory=new_id)
    day: int
    locations: list[Location] = Field(default_factory=list)


class Trip(BaseModel):
    """Metadata record of a saved trip. Locations and days are stored separately."""

    id: str = Field(default_factory=new_id)
    destination: str
    created_date: datetime = Field(default_factory=utc_now)
    last_modified_date: datetime = Field(default_factory=utc_now)
    map_region: MapRegion = Field(default_factory=MapRegion)
    number_of_days: int = 3


class TripSnapshot(BaseModel):
    """Read-only copy of the in-memory trip handed to observers."""

    destination: str = ""
    number_of_days: int = 3
    locations: list[Location] = Field(default_factory=list)
    trip_days: list[TripDay] = Field(default_factory=list)
    region: MapRegion = Field(default_factory=MapRegion)
    is_loading: bool = False
    error: str | None = None
    active_trip_id: str | None = None


LocationList = TypeAdapter(list[Location])
TripDayList = TypeAdapter(list[TripDay])


# =============================================================================
# Request Schemas
# =============================================================================


class PlanTripRequest(BaseModel):
    destination: str = Field(..., min_length=1, description="City or region to plan for")
    number_of_days: int = Field(3, ge=1, le=14)


class MoveLocationRequest(BaseModel):
    source_indices: list[int] = Field(..., min_length=1)
    destination_index: int = Field(..., ge=0)
    day: int


class MoveLocationToDayRequest(BaseModel):
    location_id: str
    target_day: int


class LocationUpdate(BaseModel):
    name: str
    description: str


class RenameTripRequest(BaseModel):
    name: str = Field(..., min_length=1)


class SaveTripAsRequest(BaseModel):
    name: str = ""


class NewTripRequest(BaseModel):
    destination: str = ""


class DuplicateTripRequest(BaseModel):
    new_name: str | None = None
