"""
Error taxonomy for trip planning, persistence and import.
"""


class TripPlannerError(Exception):
    """Base class for all trip planner failures."""


class NetworkError(TripPlannerError):
    """Transport failure talking to a remote service."""


class ParseError(TripPlannerError):
    """The generative-text response did not contain a usable plan."""


class PersistenceError(TripPlannerError):
    """A stored record could not be written or read back."""


class TripNotFoundError(PersistenceError):
    """One of the three records of a trip is missing or undecodable."""

    def __init__(self, trip_id: str, detail: str = "Failed to load trip data"):
        super().__init__(f"{detail} (trip {trip_id})")
        self.trip_id = trip_id


class TripImportError(TripPlannerError):
    """An export envelope was malformed or carried an undecodable payload."""
