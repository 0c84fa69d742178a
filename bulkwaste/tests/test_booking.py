import json
import pytest
from datetime import date, datetime, timedelta, timezone
from fastapi.testclient import TestClient

from bulkwaste.main import app
from bulkwaste.municipality import get_municipality_directory
from bulkwaste.booking.aggregate_root import Booking
from bulkwaste.booking.history import StatusHistoryRecorder
from bulkwaste.booking.value_objects import BookingStatus, Item, StatusHistoryEntry, TimeSlot
from bulkwaste.exceptions import InvalidTransition, ValidationError

client = TestClient(app)


@pytest.fixture(autouse=True)
def stub_directory(directory):
    app.dependency_overrides[get_municipality_directory] = lambda: directory
    yield
    app.dependency_overrides.clear()


def make_item(name="Sofa"):
    return Item(name=name, description="Old three-seat sofa", weight=40.0, volume=2.5)

def make_booking():
    return Booking.create("Porto", date.today() + timedelta(days=5), TimeSlot.MORNING, [make_item()])

def booking_payload(**overrides):
    data = {
        "municipality": "Porto",
        "collection_date": (date.today() + timedelta(days=5)).isoformat(),
        "time_slot": "morning",
        "items": [{"name": "Sofa", "description": "Old sofa", "weight": 40.0, "volume": 2.5}],
    }
    data.update(overrides)
    return data

# --- UNIT TESTS ---
def test_booking_create_booking():
    booking = make_booking()
    assert booking.booking_id is None
    assert booking.status == BookingStatus.RECEIVED
    assert [h.status for h in booking.history] == [BookingStatus.RECEIVED]
    assert booking.access_token
    assert booking.items == (make_item(),)
    assert booking.created_at == booking.history[0].timestamp

def test_booking_tokens_are_unique():
    tokens = {make_booking().access_token for _ in range(50)}
    assert len(tokens) == 50

def test_booking_access_token_is_read_only():
    booking = make_booking()
    with pytest.raises(AttributeError):
        booking.access_token = "other"

def test_booking_full_lifecycle():
    booking = make_booking()
    booking.assign()
    assert booking.status == BookingStatus.ASSIGNED
    booking.start()
    assert booking.status == BookingStatus.IN_PROGRESS
    booking.complete()
    assert booking.status == BookingStatus.COMPLETED
    assert [h.status for h in booking.history] == [
        BookingStatus.RECEIVED,
        BookingStatus.ASSIGNED,
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
    ]
    assert not booking.is_active

def test_booking_rejected_transition_leaves_booking_unchanged():
    booking = make_booking()
    booking.assign()
    before = (booking.status, booking.history)
    with pytest.raises(InvalidTransition) as exc:
        booking.complete()
    assert exc.value.current_status == "ASSIGNED"
    assert exc.value.action == "complete"
    assert (booking.status, booking.history) == before

def test_booking_history_uses_recorder_clock():
    stamps = iter([datetime(2026, 3, 1, 8, tzinfo=timezone.utc), datetime(2026, 3, 1, 9, tzinfo=timezone.utc)])
    recorder = StatusHistoryRecorder(clock=lambda: next(stamps))
    booking = Booking.create("Porto", date(2026, 3, 5), TimeSlot.EVENING, [make_item()], recorder)
    booking.cancel(recorder)
    assert booking.history == (
        StatusHistoryEntry(BookingStatus.RECEIVED, datetime(2026, 3, 1, 8, tzinfo=timezone.utc)),
        StatusHistoryEntry(BookingStatus.CANCELLED, datetime(2026, 3, 1, 9, tzinfo=timezone.utc)),
    )
    assert booking.history_most_recent_first()[0].status == BookingStatus.CANCELLED

def test_booking_rejects_status_out_of_sync_with_history():
    with pytest.raises(ValueError):
        Booking(
            municipality="Porto",
            collection_date=date(2026, 3, 5),
            time_slot=TimeSlot.MORNING,
            access_token="t",
            status=BookingStatus.ASSIGNED,
            items=[make_item()],
            history=[StatusHistoryEntry(BookingStatus.RECEIVED, datetime.now(timezone.utc))],
            created_at=datetime.now(timezone.utc),
        )

@pytest.mark.parametrize("kwargs,field", [
    ({"name": ""}, "name"),
    ({"name": "x" * 31}, "name"),
    ({"description": "d" * 101}, "description"),
    ({"weight": 0}, "weight"),
    ({"volume": -1.0}, "volume"),
])
def test_item_validation(kwargs, field):
    data = {"name": "Fridge", "description": None, "weight": 50.0, "volume": 1.2}
    data.update(kwargs)
    with pytest.raises(ValidationError) as exc:
        Item(**data)
    assert exc.value.field == field

def test_item_boundaries_are_inclusive():
    item = Item(name="x" * 30, description="d" * 100, weight=0.1, volume=0.1)
    assert len(item.name) == 30

@pytest.mark.parametrize("weight,volume,field", [
    (float("nan"), 1.0, "weight"),
    (float("inf"), 1.0, "weight"),
    (10.0, float("nan"), "volume"),
    (10.0, float("-inf"), "volume"),
])
def test_item_rejects_non_finite_measures(weight, volume, field):
    with pytest.raises(ValidationError) as exc:
        Item(name="Sofa", weight=weight, volume=volume)
    assert exc.value.field == field

def test_booking_without_history_must_be_received():
    with pytest.raises(ValueError):
        Booking(
            municipality="Porto",
            collection_date=date(2026, 3, 5),
            time_slot=TimeSlot.MORNING,
            access_token="t",
            status=BookingStatus.ASSIGNED,
            items=[make_item()],
            history=[],
            created_at=datetime.now(timezone.utc),
        )

def test_time_slot_parse():
    assert TimeSlot.parse("afternoon") == TimeSlot.AFTERNOON
    with pytest.raises(ValidationError) as exc:
        TimeSlot.parse("night")
    assert exc.value.field == "time_slot"

# --- API TESTS ---
def test_create_booking_endpoint():
    response = client.post("/api/bookings/", json=booking_payload())
    assert response.status_code == 201
    resp = response.json()
    assert resp["municipality"] == "Porto"
    assert resp["current_status"] == "RECEIVED"
    assert resp["time_slot"] == "morning"
    assert resp["access_token"]
    assert resp["items"][0]["name"] == "Sofa"
    assert "status_history" not in resp

def test_create_booking_municipality_is_case_insensitive():
    response = client.post("/api/bookings/", json=booking_payload(municipality="porto"))
    assert response.status_code == 201
    assert response.json()["municipality"] == "Porto"

@pytest.mark.parametrize("overrides,field", [
    ({"municipality": "Atlantis"}, "municipality"),
    ({"municipality": "   "}, "municipality"),
    ({"time_slot": "midnight"}, "time_slot"),
    ({"items": []}, "items"),
    ({"items": [{"name": "Sofa", "weight": -1, "volume": 2}]}, "items[0].weight"),
    ({"collection_date": date.today().isoformat()}, "collection_date"),
    ({"collection_date": (date.today() + timedelta(days=91)).isoformat()}, "collection_date"),
])
def test_create_booking_validation_errors(overrides, field):
    response = client.post("/api/bookings/", json=booking_payload(**overrides))
    assert response.status_code == 400
    assert response.json()["detail"]["field"] == field

def test_create_booking_missing_date():
    data = booking_payload()
    del data["collection_date"]
    response = client.post("/api/bookings/", json=data)
    assert response.status_code == 422

def test_create_booking_capacity_exceeded():
    for _ in range(10):
        assert client.post("/api/bookings/", json=booking_payload()).status_code == 201
    response = client.post("/api/bookings/", json=booking_payload())
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["error"] == "capacity_exceeded"
    assert detail["limit"] == 10
    assert len(client.get("/api/staff/bookings/").json()) == 10

def test_get_booking_by_token():
    token = client.post("/api/bookings/", json=booking_payload()).json()["access_token"]
    response = client.get(f"/api/bookings/{token}")
    assert response.status_code == 200
    assert response.json()["access_token"] == token
    assert "status_history" not in response.json()

def test_get_booking_details_most_recent_first():
    token = client.post("/api/bookings/", json=booking_payload()).json()["access_token"]
    client.put(f"/api/bookings/{token}/cancel")
    response = client.get(f"/api/bookings/{token}/details")
    assert response.status_code == 200
    assert [h["status"] for h in response.json()["status_history"]] == ["CANCELLED", "RECEIVED"]

def test_cancel_booking_by_token_and_error():
    token = client.post("/api/bookings/", json=booking_payload()).json()["access_token"]
    response = client.put(f"/api/bookings/{token}/cancel")
    assert response.status_code == 200
    assert response.json()["current_status"] == "CANCELLED"
    response2 = client.put(f"/api/bookings/{token}/cancel")
    assert response2.status_code == 400
    assert response2.json()["detail"]["current_status"] == "CANCELLED"

def test_get_available_municipalities():
    response = client.get("/api/bookings/municipalities")
    assert response.status_code == 200
    assert "Porto" in response.json()

# --- API EDGE CASE TESTS ---
def test_get_booking_invalid_token():
    response = client.get("/api/bookings/doesnotexist")
    assert response.status_code == 404

def test_get_booking_details_invalid_token():
    response = client.get("/api/bookings/doesnotexist/details")
    assert response.status_code == 404

def test_cancel_booking_invalid_token():
    response = client.put("/api/bookings/doesnotexist/cancel")
    assert response.status_code == 404

@pytest.mark.parametrize("measures,field", [
    ({"weight": float("nan"), "volume": 2.0}, "items[0].weight"),
    ({"weight": 40.0, "volume": float("inf")}, "items[0].volume"),
])
def test_create_booking_non_finite_measures(measures, field):
    data = booking_payload(items=[dict({"name": "Sofa"}, **measures)])
    # json.dumps writes the NaN / Infinity literals some clients send
    response = client.post(
        "/api/bookings/",
        content=json.dumps(data),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["detail"]["field"] == field
    assert client.get("/api/staff/bookings/").json() == []

def test_unknown_token_not_echoed_in_404():
    response = client.get("/api/bookings/secret-token-value")
    assert response.status_code == 404
    assert "secret-token-value" not in response.text
