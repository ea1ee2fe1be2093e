import jwt
import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_day_names, get_request_service
from api.main import app
from app.core.exchange.errors import ERROR_MESSAGES
from common.weekdays import Weekday
from config import JWT_ALGORITHM, JWT_SECRET
from tests.conftest import ALICE, BOB, CAROL, MONDAY, OWNER, ROOM_ID, slot, weekly


def auth(user_id: int) -> dict:
    token = jwt.encode({"sub": str(user_id)}, JWT_SECRET, algorithm=JWT_ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


def body(**overrides) -> dict:
    payload = {
        "roomId": ROOM_ID,
        "type": "time_request",
        "targetUserId": BOB,
        "timeSlot": {"day": "monday", "date": MONDAY.isoformat(), "startTime": "10:00", "endTime": "11:00"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def client(request_service, day_names, make_room):
    make_room(
        slot(BOB, MONDAY, "10:00", "11:00"),
        availability={BOB: [weekly(Weekday.MONDAY, "10:00", "11:00"), weekly(Weekday.MONDAY, "13:00", "14:00")]},
    )
    app.dependency_overrides[get_request_service] = lambda: request_service
    app.dependency_overrides[get_day_names] = lambda: day_names
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_create_and_approve_flow(client):
    created = client.post("/requests", json=body(), headers=auth(ALICE))
    assert created.status_code == 201
    request_id = created.json()["id"]
    assert created.json()["timeSlot"] == {
        "day": "monday",
        "date": "2026-10-12",
        "startTime": "10:00",
        "endTime": "11:00",
    }

    approved = client.post(f"/requests/{request_id}/approved", json={"message": "sure"}, headers=auth(BOB))
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    room = client.get(f"/rooms/{ROOM_ID}", headers=auth(ALICE)).json()
    held = {(s["userId"], s["startTime"]) for s in room["timeSlots"]}
    assert held == {(ALICE, "10:00"), (BOB, "13:00"), (BOB, "13:30")}

    sent = client.get("/sent-requests", headers=auth(ALICE)).json()
    assert [(item["id"], item["roomId"], item["roomName"]) for item in sent] == [
        (request_id, ROOM_ID, "Studio A")
    ]
    received = client.get("/received-requests", headers=auth(BOB)).json()
    assert [item["id"] for item in received] == [request_id]


def test_owner_request_is_forbidden(client):
    response = client.post("/requests", json=body(), headers=auth(OWNER))

    assert response.status_code == 403
    assert response.json()["detail"]["msg"] == ERROR_MESSAGES["OWNER_CANNOT_REQUEST"]


def test_duplicate_request_is_flagged(client):
    client.post("/requests", json=body(), headers=auth(ALICE))

    response = client.post("/requests", json=body(), headers=auth(ALICE))

    assert response.status_code == 400
    assert response.json()["detail"]["duplicateRequest"] is True


def test_missing_fields_are_a_bad_request(client):
    response = client.post("/requests", json={"roomId": ROOM_ID}, headers=auth(ALICE))

    assert response.status_code == 400
    assert response.json()["detail"]["msg"] == ERROR_MESSAGES["REQUIRED_FIELDS_MISSING"]


def test_unknown_day_label_is_a_bad_request(client):
    time_slot = {"day": "someday", "startTime": "10:00", "endTime": "11:00"}

    response = client.post("/requests", json=body(timeSlot=time_slot), headers=auth(ALICE))

    assert response.status_code == 400
    assert response.json()["detail"]["msg"] == ERROR_MESSAGES["INVALID_TIME_RANGE"]


def test_action_errors(client):
    request_id = client.post("/requests", json=body(), headers=auth(ALICE)).json()["id"]

    assert client.post(f"/requests/{request_id}/maybe", headers=auth(BOB)).status_code == 400
    assert client.post(f"/requests/{request_id}/approved", headers=auth(CAROL)).status_code == 403
    assert client.post("/requests/unknown/approved", headers=auth(BOB)).status_code == 404


def test_cancel_and_chain_confirm_routes(client):
    request_id = client.post("/requests", json=body(), headers=auth(ALICE)).json()["id"]

    not_needed = client.post(
        f"/requests/{request_id}/chain-confirm", json={"action": "proceed"}, headers=auth(ALICE)
    )
    assert not_needed.status_code == 400
    assert not_needed.json()["detail"]["msg"] == ERROR_MESSAGES["CHAIN_CONFIRMATION_NOT_NEEDED"]

    assert client.delete(f"/requests/{request_id}", headers=auth(BOB)).status_code == 403
    cancelled = client.delete(f"/requests/{request_id}", headers=auth(ALICE))
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"


def test_requests_need_a_valid_token(client):
    assert client.get("/sent-requests").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/sent-requests", headers=bad).status_code == 401
