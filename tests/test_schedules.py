"""
Tests for schedule management, search and the seat ledger view.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from httpx import AsyncClient

from shuttle.schemas.booking import BookingCreate
from shuttle.services.booking_service import create_booking
from shuttle.services.seat_service import generate_seat_labels

JAKARTA = ZoneInfo("Asia/Jakarta")


def _schedule_body(route_id: int, departure: datetime, seats: int = 8) -> dict:
    return {
        "route_id": route_id,
        "departure_time": departure.isoformat(),
        "arrival_time": (departure + timedelta(hours=3)).isoformat(),
        "price": "120000.00",
        "total_seats": seats,
    }


def test_seat_labels():
    assert generate_seat_labels(6) == ["A1", "A2", "A3", "A4", "B1", "B2"]
    assert generate_seat_labels(4, per_row=2) == ["A1", "A2", "B1", "B2"]


@pytest.mark.asyncio
async def test_create_schedule_creates_seat_ledger(client: AsyncClient, admin_headers, test_route):
    departure = datetime.now(timezone.utc) + timedelta(days=3)
    response = await client.post(
        "/api/v1/schedules/", json=_schedule_body(test_route.id, departure, seats=6), headers=admin_headers
    )
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["origin"] == "Jakarta"
    assert data["destination"] == "Bandung"
    assert data["duration"] == "3h 0m"
    assert data["total_seats"] == 6
    assert data["available_seats"] == 6

    seats = await client.get(f"/api/v1/schedules/{data['id']}/seats", headers=admin_headers)
    body = seats.json()
    assert [s["label"] for s in body["seats"]] == ["A1", "A2", "A3", "A4", "B1", "B2"]
    assert body["booked_seats"] == 0


@pytest.mark.asyncio
async def test_naive_times_are_business_local(client: AsyncClient, admin_headers, test_route):
    local = (datetime.now(JAKARTA) + timedelta(days=3)).replace(hour=8, minute=0, second=0, microsecond=0)
    body = _schedule_body(test_route.id, local.replace(tzinfo=None))
    response = await client.post("/api/v1/schedules/", json=body, headers=admin_headers)
    assert response.status_code == 201

    departure = datetime.fromisoformat(response.json()["departure_time"].replace("Z", "+00:00"))
    assert departure == local


@pytest.mark.asyncio
async def test_create_schedule_validation(client: AsyncClient, admin_headers, test_route):
    # Failed requests roll back the shared session and expire the fixtures
    route_id = test_route.id
    future = datetime.now(timezone.utc) + timedelta(days=3)

    too_big = await client.post(
        "/api/v1/schedules/", json=_schedule_body(route_id, future, seats=51), headers=admin_headers
    )
    assert too_big.status_code == 400

    past = await client.post(
        "/api/v1/schedules/",
        json=_schedule_body(route_id, datetime.now(timezone.utc) - timedelta(hours=2)),
        headers=admin_headers,
    )
    assert past.status_code == 400

    backwards = _schedule_body(route_id, future)
    backwards["arrival_time"] = (future - timedelta(hours=1)).isoformat()
    assert (await client.post("/api/v1/schedules/", json=backwards, headers=admin_headers)).status_code == 400

    no_route = await client.post(
        "/api/v1/schedules/", json=_schedule_body(999999, future), headers=admin_headers
    )
    assert no_route.status_code == 404


@pytest.mark.asyncio
async def test_schedule_management_is_admin_only(client: AsyncClient, auth_headers, test_route, test_schedule):
    route_id, schedule_id = test_route.id, test_schedule.id
    future = datetime.now(timezone.utc) + timedelta(days=3)
    create = await client.post("/api/v1/schedules/", json=_schedule_body(route_id, future), headers=auth_headers)
    assert create.status_code == 403

    # Passengers may still read a single schedule
    read = await client.get(f"/api/v1/schedules/{schedule_id}", headers=auth_headers)
    assert read.status_code == 200


@pytest.mark.asyncio
async def test_search_by_day_and_cities(client: AsyncClient, auth_headers, test_schedule, make_schedule):
    departure_day = test_schedule.departure_time.astimezone(JAKARTA).date()
    later = await make_schedule(seats=4, departure=test_schedule.departure_time + timedelta(days=2))

    response = await client.get(
        "/api/v1/schedules/search",
        params={"origin": "jakarta", "destination": "BANDUNG", "departure_date": departure_day.isoformat()},
        headers=auth_headers,
    )
    assert response.status_code == 200
    ids = [s["id"] for s in response.json()["results"]]
    assert test_schedule.id in ids
    assert later.id not in ids

    elsewhere = await client.get(
        "/api/v1/schedules/search",
        params={"origin": "Jakarta", "destination": "Surabaya", "departure_date": departure_day.isoformat()},
        headers=auth_headers,
    )
    assert elsewhere.json()["total"] == 0


@pytest.mark.asyncio
async def test_search_rejects_past_dates(client: AsyncClient, auth_headers):
    yesterday = (datetime.now(JAKARTA) - timedelta(days=1)).date()
    response = await client.get(
        "/api/v1/schedules/search",
        params={"origin": "Jakarta", "destination": "Bandung", "departure_date": yesterday.isoformat()},
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_search_hides_sold_out_schedules(
    client: AsyncClient, db_session, auth_headers, test_user, make_schedule
):
    full = await make_schedule(seats=2)
    seat_ids = (await client.get(f"/api/v1/schedules/{full.id}/seats", headers=auth_headers)).json()["seats"]
    await create_booking(
        db_session,
        test_user.id,
        BookingCreate(
            schedule_id=full.id,
            passengers=[{"seat_id": s["id"], "passenger_name": "Agus Salim"} for s in seat_ids],
        ),
    )

    day = full.departure_time.astimezone(JAKARTA).date()
    response = await client.get(
        "/api/v1/schedules/search",
        params={"origin": "Jakarta", "destination": "Bandung", "departure_date": day.isoformat()},
        headers=auth_headers,
    )
    assert full.id not in [s["id"] for s in response.json()["results"]]

    detail = await client.get(f"/api/v1/schedules/{full.id}", headers=auth_headers)
    assert detail.json()["available_seats"] == 0


@pytest.mark.asyncio
async def test_update_schedule(client: AsyncClient, admin_headers, test_schedule):
    response = await client.put(
        f"/api/v1/schedules/{test_schedule.id}", json={"price": "175000.00"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["price"] == "175000.00"

    fixed = await client.put(
        f"/api/v1/schedules/{test_schedule.id}", json={"total_seats": 20}, headers=admin_headers
    )
    assert fixed.status_code == 422


@pytest.mark.asyncio
async def test_delete_schedule_blocked_while_seats_held(
    client: AsyncClient, admin_headers, auth_headers, test_schedule, seats
):
    booked = await client.post(
        "/api/v1/bookings/",
        json={"schedule_id": test_schedule.id, "passengers": [{"seat_id": seats[0].id, "passenger_name": "Rina"}]},
        headers=auth_headers,
    )
    assert booked.status_code == 201

    response = await client.delete(f"/api/v1/schedules/{test_schedule.id}", headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_delete_free_schedule(client: AsyncClient, admin_headers, test_schedule):
    response = await client.delete(f"/api/v1/schedules/{test_schedule.id}", headers=admin_headers)
    assert response.status_code == 204

    gone = await client.get(f"/api/v1/schedules/{test_schedule.id}", headers=admin_headers)
    assert gone.status_code == 404
