import json
from datetime import datetime, timezone

import pytest

from tripplanner.core.errors import TripImportError
from tripplanner.core.geo import MapRegion
from tripplanner.core.response_parser import parse_trip_response
from tripplanner.core.schemas import LocationList, TripDayList
from tripplanner.core.trip_codec import build_export_envelope, decode_import_envelope, normalize_payload

CREATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
REGION = MapRegion(center_latitude=48.8584, center_longitude=2.2945, latitude_delta=0.05, longitude_delta=0.05)


@pytest.fixture
def parsed(plan_text):
    return parse_trip_response(plan_text)


def test_envelope_round_trip(parsed):
    data = build_export_envelope("Paris", CREATED, parsed.locations, parsed.trip_days, REGION)

    imported = decode_import_envelope(data)

    assert imported.destination == "Paris"
    assert imported.created_date == CREATED
    assert imported.region == REGION
    assert imported.locations == parsed.locations
    assert imported.trip_days == parsed.trip_days
    assert [len(d.locations) for d in imported.trip_days] == [2, 1]
    assert imported.number_of_days == 2


def test_envelope_layout(parsed):
    envelope = json.loads(
        build_export_envelope("Paris", CREATED, parsed.locations, parsed.trip_days, REGION, number_of_days=4)
    )

    assert set(envelope) == {"destination", "createdDate", "locations", "tripDays", "region", "numberOfDays"}
    assert envelope["createdDate"] == CREATED.timestamp()
    assert envelope["region"] == {
        "centerLatitude": 48.8584,
        "centerLongitude": 2.2945,
        "latitudeDelta": 0.05,
        "longitudeDelta": 0.05,
    }
    assert decode_import_envelope(envelope).number_of_days == 4


def test_encoded_and_generic_payloads_decode_alike(parsed):
    from_models = build_export_envelope("Paris", CREATED, parsed.locations, parsed.trip_days, REGION)
    from_bytes = build_export_envelope(
        "Paris",
        CREATED,
        LocationList.dump_json(parsed.locations),
        TripDayList.dump_json(parsed.trip_days),
        REGION,
    )

    assert json.loads(from_models) == json.loads(from_bytes)


def test_import_accepts_already_encoded_payloads(parsed):
    envelope = {
        "destination": "Paris",
        "createdDate": CREATED.timestamp(),
        "locations": LocationList.dump_json(parsed.locations).decode("utf-8"),
        "tripDays": TripDayList.dump_json(parsed.trip_days).decode("utf-8"),
    }

    imported = decode_import_envelope(envelope)

    assert imported.locations == parsed.locations
    assert imported.region is None


def test_normalize_payload():
    assert normalize_payload(b"[1]") == b"[1]"
    assert normalize_payload("[1]") == b"[1]"
    assert json.loads(normalize_payload([{"a": 1}])) == [{"a": 1}]
    with pytest.raises(ValueError):
        normalize_payload(None)


@pytest.mark.parametrize(
    "data, message",
    [
        (b"not json", "Invalid import data format"),
        (b"[1, 2]", "Invalid import data format"),
        ({"locations": [], "tripDays": []}, "Missing destination in import data"),
        ({"destination": "Paris", "tripDays": []}, "Invalid locations data format"),
        ({"destination": "Paris", "locations": []}, "Invalid trip days data format"),
    ],
)
def test_import_rejects_malformed_envelopes(data, message):
    with pytest.raises(TripImportError) as exc:
        decode_import_envelope(data)
    assert str(exc.value) == message


def test_import_rejects_undecodable_locations():
    data = {"destination": "Paris", "locations": [{"name": "No coordinates"}], "tripDays": []}

    with pytest.raises(TripImportError) as exc:
        decode_import_envelope(data)
    assert str(exc.value).startswith("Failed to decode imported trip")


def test_import_defaults_missing_dates_and_day_count():
    imported = decode_import_envelope({"destination": "Oslo", "locations": [], "tripDays": []})

    assert imported.created_date.tzinfo is not None
    assert imported.number_of_days == 3
    assert imported.locations == []


def test_import_rejects_days_that_disagree_with_locations(parsed):
    envelope = json.loads(build_export_envelope("Paris", CREATED, parsed.locations, parsed.trip_days, REGION))
    envelope["tripDays"][1]["locations"] = []

    with pytest.raises(TripImportError) as exc:
        decode_import_envelope(envelope)
    assert str(exc.value) == "Locations and trip days do not match"


def test_import_rejects_location_filed_under_wrong_day(parsed):
    envelope = json.loads(build_export_envelope("Paris", CREATED, parsed.locations, parsed.trip_days, REGION))
    envelope["tripDays"][1]["day"] = 3

    with pytest.raises(TripImportError):
        decode_import_envelope(envelope)


def test_import_rejects_gaps_in_day_order(parsed):
    envelope = json.loads(build_export_envelope("Paris", CREATED, parsed.locations, parsed.trip_days, REGION))
    envelope["tripDays"][0]["locations"][1]["order"] = 5
    envelope["locations"][1]["order"] = 5

    with pytest.raises(TripImportError) as exc:
        decode_import_envelope(envelope)
    assert str(exc.value) == "Invalid location order in day 1"


def test_import_rejects_non_finite_coordinates():
    data = (
        b'{"destination": "Paris", "tripDays": [], "locations": [{"name": "A", "description": "d",'
        b' "latitude": NaN, "longitude": 1.0, "day": 1, "order": 0}]}'
    )

    with pytest.raises(TripImportError):
        decode_import_envelope(data)


def test_import_ignores_non_finite_region():
    data = (
        b'{"destination": "Paris", "locations": [], "tripDays": [], "region": {"centerLatitude": NaN,'
        b' "centerLongitude": 2.0, "latitudeDelta": 0.1, "longitudeDelta": 0.1}}'
    )

    assert decode_import_envelope(data).region is None
