from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from tripplanner.core.schemas import (
    DuplicateTripRequest,
    LocationUpdate,
    MoveLocationRequest,
    MoveLocationToDayRequest,
    NewTripRequest,
    PlanTripRequest,
    RenameTripRequest,
    SaveTripAsRequest,
    Trip,
    TripSnapshot,
)
from tripplanner.core.trip_state import TripStateManager


router = APIRouter(prefix="/trips", tags=["trips"])


def get_manager(request: Request) -> TripStateManager:
    return request.app.state.manager


@router.get("/state")
async def get_state(manager: TripStateManager = Depends(get_manager)) -> TripSnapshot:
    return manager.snapshot()


@router.post("/plan")
async def plan_trip(
    payload: PlanTripRequest, manager: TripStateManager = Depends(get_manager)
) -> TripSnapshot:
    """Generate a new day-by-day plan for a destination."""
    if not await manager.plan_trip(payload.destination, payload.number_of_days):
        raise HTTPException(status_code=502, detail=manager.error or "Failed to plan trip")
    return manager.snapshot()


@router.post("/move")
async def move_location(
    payload: MoveLocationRequest, manager: TripStateManager = Depends(get_manager)
) -> TripSnapshot:
    if not manager.move_location(payload.source_indices, payload.destination_index, payload.day):
        raise HTTPException(status_code=404, detail=f"Day {payload.day} not found")
    manager.save_current_trip()
    return manager.snapshot()


@router.post("/move-to-day")
async def move_location_to_day(
    payload: MoveLocationToDayRequest, manager: TripStateManager = Depends(get_manager)
) -> TripSnapshot:
    if not manager.move_location_to_day(payload.location_id, payload.target_day):
        raise HTTPException(status_code=404, detail="Location or target day not found")
    return manager.snapshot()


@router.patch("/locations/{location_id}")
async def update_location(
    location_id: str,
    payload: LocationUpdate,
    manager: TripStateManager = Depends(get_manager),
) -> TripSnapshot:
    if not manager.update_location_details(location_id, payload.name, payload.description):
        raise HTTPException(status_code=404, detail="Location not found")
    manager.save_current_trip()
    return manager.snapshot()


@router.post("/save")
async def save_trip(manager: TripStateManager = Depends(get_manager)) -> Trip:
    trip = manager.save_current_trip()
    if trip is None:
        raise HTTPException(status_code=400, detail=manager.error or "Nothing to save")
    return trip


@router.post("/save-as")
async def save_trip_as(
    payload: SaveTripAsRequest, manager: TripStateManager = Depends(get_manager)
) -> Trip:
    trip = manager.save_trip_as_new(payload.name)
    if trip is None:
        raise HTTPException(status_code=400, detail=manager.error or "Nothing to save")
    return trip


@router.post("/new")
async def new_trip(
    payload: NewTripRequest, manager: TripStateManager = Depends(get_manager)
) -> TripSnapshot:
    manager.create_new_empty_trip(payload.destination)
    return manager.snapshot()


@router.get("/")
async def list_trips(manager: TripStateManager = Depends(get_manager)) -> list[Trip]:
    return manager.list_trips()


@router.get("/export")
async def export_trip(
    trip_id: str | None = Query(None, description="Saved trip to export (defaults to active)"),
    manager: TripStateManager = Depends(get_manager),
) -> Response:
    data = manager.export_trip(trip_id)
    if data is None:
        raise HTTPException(status_code=404, detail=manager.error or "No trip to export")
    return Response(
        content=data,
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="trip.json"'},
    )


@router.post("/import")
async def import_trip(request: Request) -> TripSnapshot:
    manager = get_manager(request)
    if not manager.import_trip(await request.body()):
        raise HTTPException(status_code=422, detail=manager.error or "Failed to import trip")
    return manager.snapshot()


@router.get("/fun-facts")
async def fun_facts(
    destination: str | None = Query(None),
    manager: TripStateManager = Depends(get_manager),
) -> list[str]:
    return await manager.fun_facts(destination)


@router.post("/{trip_id}/load")
async def load_trip(trip_id: str, manager: TripStateManager = Depends(get_manager)) -> TripSnapshot:
    if not manager.load_trip(trip_id):
        raise HTTPException(status_code=404, detail=manager.error or "Trip not found")
    return manager.snapshot()


@router.delete("/{trip_id}")
async def delete_trip(trip_id: str, manager: TripStateManager = Depends(get_manager)) -> dict[str, bool]:
    if not manager.delete_trip(trip_id):
        raise HTTPException(status_code=503, detail=manager.error or "Failed to delete trip")
    return {"success": True}


@router.patch("/{trip_id}")
async def rename_trip(
    trip_id: str,
    payload: RenameTripRequest,
    manager: TripStateManager = Depends(get_manager),
) -> TripSnapshot:
    if not manager.rename_trip(trip_id, payload.name):
        raise HTTPException(status_code=404, detail=manager.error or "Trip not found")
    return manager.snapshot()


@router.post("/{trip_id}/duplicate")
async def duplicate_trip(
    trip_id: str,
    payload: DuplicateTripRequest | None = None,
    manager: TripStateManager = Depends(get_manager),
) -> Trip:
    trip = manager.duplicate_trip(trip_id, payload.new_name if payload else None)
    if trip is None:
        raise HTTPException(status_code=404, detail=manager.error or "Trip not found")
    return trip
