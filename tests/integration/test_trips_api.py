import pytest
from fastapi.testclient import TestClient

from tripplanner.core.trip_state import TripStateManager
from tripplanner.main import create_app


@pytest.fixture
def client(manager):
    return TestClient(create_app(manager))


def plan(client):
    response = client.post("/trips/plan", json={"destination": "Paris", "number_of_days": 2})
    assert response.status_code == 200
    return response.json()


def test_initial_state(client):
    response = client.get("/trips/state")

    assert response.status_code == 200
    body = response.json()
    assert body["destination"] == ""
    assert body["locations"] == []
    assert body["is_loading"] is False


def test_plan_trip(client):
    body = plan(client)

    assert body["destination"] == "Paris"
    assert [len(day["locations"]) for day in body["trip_days"]] == [2, 1]
    assert body["region"]["center_latitude"] == 48.8584


def test_plan_trip_failure_returns_502(make_manager):
    client = TestClient(create_app(make_manager("no plan here")))

    response = client.post("/trips/plan", json={"destination": "Paris", "number_of_days": 2})

    assert response.status_code == 502
    assert response.json()["detail"]


def test_plan_trip_validates_day_count(client):
    response = client.post("/trips/plan", json={"destination": "Paris", "number_of_days": 0})

    assert response.status_code == 422


def test_move_within_day_saves(client):
    plan(client)

    response = client.post("/trips/move", json={"source_indices": [0], "destination_index": 2, "day": 1})

    assert response.status_code == 200
    body = response.json()
    assert [loc["name"] for loc in body["trip_days"][0]["locations"]] == ["Louvre Museum", "Eiffel Tower"]
    assert body["active_trip_id"] is not None


def test_move_within_unknown_day(client):
    plan(client)

    response = client.post("/trips/move", json={"source_indices": [0], "destination_index": 1, "day": 5})

    assert response.status_code == 404


def test_move_to_day(client):
    body = plan(client)
    montmartre = body["trip_days"][1]["locations"][0]

    response = client.post("/trips/move-to-day", json={"location_id": montmartre["id"], "target_day": 1})

    assert response.status_code == 200
    days = response.json()["trip_days"]
    assert days[0]["locations"][-1]["id"] == montmartre["id"]
    assert days[1]["locations"] == []

    missing = client.post("/trips/move-to-day", json={"location_id": "missing", "target_day": 1})
    assert missing.status_code == 404


def test_update_location(client):
    body = plan(client)
    location_id = body["locations"][0]["id"]

    response = client.patch(f"/trips/locations/{location_id}", json={"name": "Tour Eiffel", "description": "Icon"})

    assert response.status_code == 200
    assert response.json()["trip_days"][0]["locations"][0]["name"] == "Tour Eiffel"
    assert client.patch("/trips/locations/missing", json={"name": "x", "description": "y"}).status_code == 404


def test_save_requires_locations(client):
    assert client.post("/trips/save").status_code == 400


def test_saved_trip_lifecycle(client):
    plan(client)
    trip = client.post("/trips/save").json()
    assert trip["destination"] == "Paris"

    renamed = client.patch(f"/trips/{trip['id']}", json={"name": "Paris in May"})
    assert renamed.status_code == 200
    assert renamed.json()["destination"] == "Paris in May"

    copy = client.post(f"/trips/{trip['id']}/duplicate")
    assert copy.status_code == 200
    assert copy.json()["destination"] == "Paris in May (Copy)"

    listed = client.get("/trips/").json()
    assert {t["id"] for t in listed} == {trip["id"], copy.json()["id"]}

    assert client.delete(f"/trips/{trip['id']}").json() == {"success": True}
    assert client.get("/trips/state").json()["active_trip_id"] is None

    loaded = client.post(f"/trips/{copy.json()['id']}/load")
    assert loaded.status_code == 200
    assert loaded.json()["destination"] == "Paris in May (Copy)"


def test_save_as_and_new_trip(client):
    plan(client)
    first = client.post("/trips/save").json()

    second = client.post("/trips/save-as", json={"name": "Weekend in Paris"}).json()
    assert second["id"] != first["id"]

    fresh = client.post("/trips/new", json={"destination": "Rome"}).json()
    assert fresh["destination"] == "Rome"
    assert fresh["locations"] == []
    assert fresh["active_trip_id"] is None


def test_missing_trip_routes(client):
    assert client.post("/trips/missing/load").status_code == 404
    assert client.patch("/trips/missing", json={"name": "x"}).status_code == 404
    assert client.post("/trips/missing/duplicate").status_code == 404
    assert client.get("/trips/export", params={"trip_id": "missing"}).status_code == 404


def test_export_and_import(client):
    plan(client)
    client.post("/trips/save")

    exported = client.get("/trips/export")
    assert exported.status_code == 200
    assert "attachment" in exported.headers["content-disposition"]

    imported = client.post("/trips/import", content=exported.content)
    assert imported.status_code == 200
    assert imported.json()["destination"] == "Paris"
    assert len(client.get("/trips/").json()) == 2


def test_import_rejects_garbage(client):
    response = client.post("/trips/import", content=b"not a trip")

    assert response.status_code == 422
    assert response.json()["detail"].startswith("Failed to import trip")


def test_fun_facts(make_manager):
    client = TestClient(create_app(make_manager('["Fact one about Rome.", "Fact two about Rome."]')))

    response = client.get("/trips/fun-facts", params={"destination": "Rome"})

    assert response.status_code == 200
    assert response.json() == ["Fact one about Rome.", "Fact two about Rome."]


def test_photo_proxy_without_places(client):
    assert client.get("/places/photo", params={"ref": "abc"}).status_code == 503


def test_startup_restores_last_active_trip(client, repository):
    plan(client)
    trip = client.post("/trips/save").json()

    with TestClient(create_app(TripStateManager(repository))) as restarted:
        state = restarted.get("/trips/state").json()

    assert state["destination"] == "Paris"
    assert state["active_trip_id"] == trip["id"]


def test_app_starts_and_stops_while_storage_is_down(flaky_manager, flaky_store):
    flaky_store.down = True

    with TestClient(create_app(flaky_manager)) as client:
        state = client.get("/trips/state")
        plan(client)
        deleted = client.delete("/trips/some-trip")

    assert state.status_code == 200
    assert state.json()["active_trip_id"] is None
    assert deleted.status_code == 503


def test_import_rejects_mismatched_days(client):
    plan(client)
    envelope = client.get("/trips/export").json()
    envelope["tripDays"][0]["locations"].pop()

    response = client.post("/trips/import", json=envelope)

    assert response.status_code == 422
    assert "do not match" in response.json()["detail"]
