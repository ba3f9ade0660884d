"""Shared fixtures for trip planner tests."""

import json
from typing import Callable

import pytest
import pytest_asyncio

from tripplanner.core.errors import NetworkError, PersistenceError
from tripplanner.core.kv_store import InMemoryKeyValueStore
from tripplanner.core.repository import TripRepository
from tripplanner.core.trip_state import TripStateManager

PLAN = {
    "days": [
        {
            "day": 1,
            "locations": [
                {
                    "name": "Eiffel Tower",
                    "description": "Iron lattice tower",
                    "latitude": 48.8584,
                    "longitude": 2.2945,
                    "place_id": "ChIJLU7jZClu5kcR4PcOOO6p3I0",
                },
                {
                    "name": "Louvre Museum",
                    "description": "World's largest art museum",
                    "latitude": 48.8606,
                    "longitude": 2.3376,
                },
            ],
        },
        {
            "day": 2,
            "locations": [
                {
                    "name": "Montmartre",
                    "description": "Hilltop artists' district",
                    "latitude": 48.8867,
                    "longitude": 2.3431,
                },
            ],
        },
    ]
}


class FakeProvider:
    """Stands in for LLMProvider: returns queued responses in order."""

    def __init__(self, *responses: str | Exception):
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def generate_async(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise NetworkError("no response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FlakyStore(InMemoryKeyValueStore):
    """In-memory store that raises PersistenceError while ``down`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise PersistenceError("store unavailable")

    def get(self, key: str) -> bytes | None:
        self._check()
        return super().get(key)

    def set(self, key: str, value: bytes) -> None:
        self._check()
        super().set(key, value)

    def remove(self, key: str) -> None:
        self._check()
        super().remove(key)


@pytest.fixture
def plan_text() -> str:
    return json.dumps(PLAN)


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(store: InMemoryKeyValueStore) -> TripRepository:
    return TripRepository(store)


@pytest.fixture
def provider(plan_text: str) -> FakeProvider:
    return FakeProvider(plan_text)


@pytest.fixture
def manager(repository: TripRepository, provider: FakeProvider) -> TripStateManager:
    return TripStateManager(repository, provider=provider)


@pytest_asyncio.fixture
async def planned_manager(manager: TripStateManager) -> TripStateManager:
    """Manager holding the two-day Paris plan."""
    assert await manager.plan_trip("Paris", 2)
    return manager


def _check_consistency(manager: TripStateManager) -> None:
    flat = {loc.id: (loc.day, loc.order) for loc in manager.locations}
    grouped = {}
    for group in manager.trip_days:
        orders = [loc.order for loc in group.locations]
        assert orders == list(range(len(group.locations))), f"day {group.day}: {orders}"
        for loc in group.locations:
            assert loc.day == group.day
            assert loc.id not in grouped, f"{loc.id} appears in two day-groups"
            grouped[loc.id] = (loc.day, loc.order)
    assert flat == grouped


@pytest.fixture
def check_consistency() -> Callable[[TripStateManager], None]:
    """Assert that the flat and day-grouped views agree and orders are dense."""
    return _check_consistency


@pytest.fixture
def make_manager(repository: TripRepository) -> Callable[..., TripStateManager]:
    """Build a manager whose provider returns the given responses in order."""

    def _make(*responses: str | Exception, places=None) -> TripStateManager:
        return TripStateManager(repository, provider=FakeProvider(*responses), places=places)

    return _make


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def flaky_manager(flaky_store: FlakyStore, plan_text: str) -> TripStateManager:
    """Manager over a store that can be taken down mid-test."""
    return TripStateManager(TripRepository(flaky_store), provider=FakeProvider(plan_text))
