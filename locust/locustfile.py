"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Everyone fights for the same seats
  locust -f locustfile.py --tags throughput   # Search and the live seat map
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Setup needs an admin account (passengers cannot create schedules), e.g. one
made with shuttle-create-admin:
  LOCUST_ADMIN_EMAIL / LOCUST_ADMIN_PASSWORD
or an existing schedule to attack:
  CONTENTION_SCHEDULE_ID
"""

import os
import random
from datetime import datetime, timedelta, timezone

import requests
from locust import HttpUser, task, between, tag, events

PASSWORD = "loadtest-password"

# Shared state
SCHEDULE_IDS = []
CONTENTION = {"schedule_id": None, "seat_ids": [], "departure_date": None}


def random_email():
    return f"load_{random.randint(100000, 999999)}@test.com"


def register_and_login(client):
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "full_name": "Load Tester",
        "password": PASSWORD,
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}
    return {}


def _admin_headers(host):
    email = os.environ.get("LOCUST_ADMIN_EMAIL")
    password = os.environ.get("LOCUST_ADMIN_PASSWORD")
    if not email or not password:
        return None
    resp = requests.post(f"{host}/api/v1/auth/login", json={"email": email, "password": password}, timeout=10)
    resp.raise_for_status()
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: a schedule with 10 seats for the contention test."""
    host = environment.host
    print("\n" + "=" * 60)
    print("SETUP: Preparing contention schedule...")
    print("=" * 60)

    schedule_id = os.environ.get("CONTENTION_SCHEDULE_ID")
    headers = _admin_headers(host)

    if not schedule_id and headers:
        resp = requests.post(f"{host}/api/v1/routes/", json={
            "origin_city": "Loadtown",
            "destination_city": f"Stress {random.randint(1, 99999)}",
        }, headers=headers, timeout=10)
        resp.raise_for_status()

        departure = datetime.now(timezone.utc) + timedelta(days=7)
        resp = requests.post(f"{host}/api/v1/schedules/", json={
            "route_id": resp.json()["id"],
            "departure_time": departure.isoformat(),
            "arrival_time": (departure + timedelta(hours=3)).isoformat(),
            "price": "100000.00",
            "total_seats": 10,
        }, headers=headers, timeout=10)
        resp.raise_for_status()
        schedule_id = resp.json()["id"]

    if not schedule_id:
        print("No admin credentials or CONTENTION_SCHEDULE_ID; concurrency tasks will idle")
        return

    probe = headers or register_and_login(_HostClient(host))
    resp = requests.get(f"{host}/api/v1/schedules/{schedule_id}/seats", headers=probe, timeout=10)
    resp.raise_for_status()
    CONTENTION["schedule_id"] = int(schedule_id)
    CONTENTION["seat_ids"] = [seat["id"] for seat in resp.json()["seats"]]
    SCHEDULE_IDS.append(int(schedule_id))

    detail = requests.get(f"{host}/api/v1/schedules/{schedule_id}", headers=probe, timeout=10).json()
    CONTENTION["departure_date"] = detail["departure_time"][:10]
    CONTENTION["route"] = (detail["origin"], detail["destination"])
    print(f"\n✓ Schedule {schedule_id} with {len(CONTENTION['seat_ids'])} seats\n")


class _HostClient:
    """Host-bound requests wrapper so setup can reuse register_and_login."""

    def __init__(self, host):
        self.host = host

    def post(self, path, **kwargs):
        return requests.post(f"{self.host}{path}", timeout=10, **kwargs)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users → 10 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no seat is sold twice:
      SELECT seat_id, COUNT(*) FROM booking_lines
      WHERE retired_at IS NULL GROUP BY seat_id HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = register_and_login(self.client)

    @tag("concurrency")
    @task
    def book_contended_seat(self):
        """Everyone asks for one of the same 10 seats."""
        if not CONTENTION["seat_ids"] or not self.headers:
            return

        seat_id = random.choice(CONTENTION["seat_ids"])
        with self.client.post("/api/v1/bookings/",
            json={
                "schedule_id": CONTENTION["schedule_id"],
                "passengers": [{"seat_id": seat_id, "passenger_name": "Load Tester"}],
            },
            headers=self.headers,
            name="/api/v1/bookings/ [contended]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: someone else holds the seat
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - reads that sit next to the reservation path

    Run: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s

    Watch avg / P95 / P99 for search and the seat map while the concurrency
    users are booking: both read the live ledger, never a cache.
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    @tag("throughput", "read")
    @task(10)
    def search_schedules(self):
        if not CONTENTION.get("route") or not self.headers:
            return
        origin, destination = CONTENTION["route"]
        self.client.get("/api/v1/schedules/search",
            params={
                "origin": origin,
                "destination": destination,
                "departure_date": CONTENTION["departure_date"],
            },
            headers=self.headers,
            name="/api/v1/schedules/search")

    @tag("throughput", "read")
    @task(5)
    def seat_map(self):
        """Seat availability is never cached."""
        if SCHEDULE_IDS and self.headers:
            schedule_id = random.choice(SCHEDULE_IDS)
            self.client.get(f"/api/v1/schedules/{schedule_id}/seats",
                headers=self.headers,
                name="/api/v1/schedules/{id}/seats")

    @tag("throughput", "read")
    @task(3)
    def my_bookings(self):
        if self.headers:
            self.client.get("/api/v1/bookings/?page=1&limit=10", headers=self.headers)

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    def _expect(self, resp, *codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_schedule_id(self):
        """Book on a non-existent schedule."""
        with self.client.post("/api/v1/bookings/",
            json={"schedule_id": 999999, "passengers": [{"seat_id": 1, "passenger_name": "Nobody"}]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, 404, 400)

    @tag("edge")
    @task
    def duplicate_seat(self):
        """The same seat twice in one request."""
        with self.client.post("/api/v1/bookings/",
            json={
                "schedule_id": CONTENTION["schedule_id"] or 1,
                "passengers": [
                    {"seat_id": 1, "passenger_name": "Twin One"},
                    {"seat_id": 1, "passenger_name": "Twin Two"},
                ],
            },
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, 409, 404)

    @tag("edge")
    @task
    def no_passengers(self):
        with self.client.post("/api/v1/bookings/",
            json={"schedule_id": 1, "passengers": []},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, 400, 422)

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, 400, 422)

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        with self.client.post("/api/v1/bookings/",
            json={"schedule_id": 1, "passengers": [{"seat_id": 1, "passenger_name": "Anon"}]},
            catch_response=True
        ) as resp:
            self._expect(resp, 401)
