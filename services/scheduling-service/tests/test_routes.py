import httpx
import pytest

from scheduling_service.main import app
from scheduling_service.routes import get_coordinator


@pytest.fixture
async def client(coordinator):
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def payload(**overrides):
    body = {
        "resource_id": 1,
        "booking_date": "2026-01-05",
        "start_time": "18:00",
        "end_time": "20:00",
        "team_ids": [2, 1],
        "booking_type": "Practice",
        "description": "U15 practice",
    }
    body.update(overrides)
    return body


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["service"] == "scheduling-service"


async def test_create_single_booking(client):
    r = await client.post("/bookings", json=payload())

    assert r.status_code == 201
    body = r.json()
    assert body["id"] > 0
    assert body["team_ids"] == [1, 2]
    assert body["status"] == "Planned"
    assert body["start_time"] == "18:00:00"


async def test_create_recurring_booking(client):
    r = await client.post(
        "/bookings",
        json=payload(recurring_days=[1, 3], recurring_end_date="2026-01-16"),
    )

    assert r.status_code == 201
    assert [b["booking_date"] for b in r.json()] == [
        "2026-01-05", "2026-01-07", "2026-01-12", "2026-01-14",
    ]


@pytest.mark.parametrize(
    "recurrence",
    [
        {"recurring_days": [1, 3]},
        {"recurring_end_date": "2026-01-16"},
        {"recurring_days": [], "recurring_end_date": "2026-01-16"},
        {"recurring_days": [1], "recurring_end_date": "2026-01-01"},
    ],
)
async def test_malformed_recurrence_is_rejected(client, store, recurrence):
    r = await client.post("/bookings", json=payload(**recurrence))

    assert r.status_code == 400
    assert await store.list_all() == []


async def test_conflict_response_lists_bookings(client):
    first = (await client.post("/bookings", json=payload())).json()

    r = await client.post("/bookings", json=payload(start_time="19:30", end_time="21:00"))

    assert r.status_code == 409
    body = r.json()
    assert body["booking_ids"] == [first["id"]]
    assert body["conflicts"][0]["candidate_start"] == "19:30:00"


async def test_touching_booking_accepted(client):
    await client.post("/bookings", json=payload())
    r = await client.post("/bookings", json=payload(start_time="20:00", end_time="22:00"))
    assert r.status_code == 201


async def test_confirm_without_resource(client):
    created = (await client.post("/bookings", json=payload(resource_id=None))).json()

    r = await client.put(f"/bookings/{created['id']}", json={"status": "Confirmed"})

    assert r.status_code == 422


async def test_update_and_get(client):
    created = (await client.post("/bookings", json=payload())).json()

    r = await client.put(f"/bookings/{created['id']}", json={"notes": "bring bibs", "status": "Confirmed"})
    assert r.status_code == 200

    r = await client.get(f"/bookings/{created['id']}")
    assert r.json()["notes"] == "bring bibs"
    assert r.json()["status"] == "Confirmed"


async def test_put_with_recurrence_converts(client):
    created = (await client.post("/bookings", json=payload())).json()

    r = await client.put(
        f"/bookings/{created['id']}",
        json={"recurring_days": [1], "recurring_end_date": "2026-01-19", "notes": "weekly"},
    )

    assert r.status_code == 200
    series = r.json()
    assert [b["booking_date"] for b in series] == ["2026-01-05", "2026-01-12", "2026-01-19"]
    assert {b["notes"] for b in series} == {"weekly"}
    assert (await client.get(f"/bookings/{created['id']}")).status_code == 404


async def test_delete_booking(client):
    created = (await client.post("/bookings", json=payload())).json()

    r = await client.delete(f"/bookings/{created['id']}")
    assert r.status_code == 204

    assert (await client.delete(f"/bookings/{created['id']}")).status_code == 404


async def test_list_bookings(client):
    await client.post("/bookings", json=payload(recurring_days=[1, 3], recurring_end_date="2026-01-16"))

    r = await client.get("/bookings", params={"resource_id": 1, "start_date": "2026-01-06", "end_date": "2026-01-12"})

    assert r.status_code == 200
    assert [b["booking_date"] for b in r.json()] == ["2026-01-07", "2026-01-12"]


async def test_recurrence_preview(client, store):
    r = await client.post(
        "/bookings/recurrence/preview",
        json={
            "recurring_days": [1, 3],
            "start_date": "2026-01-05",
            "recurring_end_date": "2026-01-16",
            "start_time": "18:00",
            "end_time": "20:00",
        },
    )

    assert r.status_code == 200
    assert r.json()["count"] == 4
    assert r.json()["occurrences"][1]["booking_date"] == "2026-01-07"
    assert await store.list_all() == []


async def test_put_recurrence_on_cancelled_booking_rejected(client):
    created = (await client.post("/bookings", json=payload(status="Cancelled"))).json()

    r = await client.put(
        f"/bookings/{created['id']}",
        json={"recurring_days": [1], "recurring_end_date": "2026-01-19"},
    )

    assert r.status_code == 422
    assert (await client.get(f"/bookings/{created['id']}")).json()["status"] == "Cancelled"
