"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Fight for the last slots
  locust -f locustfile.py --tags checkin      # Double scans at the gate
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import random
import string
from locust import HttpUser, task, between, tag, events
from datetime import datetime, timezone, timedelta

PASSWORD = "loadtest123"

# Shared state
CONCURRENCY_EVENT_ID = None
GATE = {"event_id": None, "headers": None, "tokens": []}


def random_email():
    return f"load_{random.randint(10000, 99999)}_{random.randint(0, 999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=8))


def future_date(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def sign_up(client) -> dict:
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "username": random_username(),
        "full_name": "Load Tester",
        "password": PASSWORD,
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}
    return {}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: events are created by the first user of each class")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users (some with companions) -> 10 slots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT reserved_slots, capacity FROM events WHERE id = X;
    reserved_slots must be <= capacity, and must equal the number of
    active owners + non-cancelled companions.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = sign_up(self.client)
        if self.headers and not CONCURRENCY_EVENT_ID:
            resp = self.client.post("/api/v1/events/", json={
                "title": "Concurrency Test Hike",
                "description": "10 slots only",
                "category": "hiking",
                "date": future_date(),
                "location": "Test",
                "price": 0,
                "capacity": 10,
            }, headers=self.headers)
            if resp.status_code == 201:
                globals()["CONCURRENCY_EVENT_ID"] = resp.json()["id"]
                print(f"\nCreated event {CONCURRENCY_EVENT_ID} with 10 slots\n")

    @tag("concurrency")
    @task
    def book_last_slots(self):
        """All users fight for the same 10 slots, some bringing friends."""
        if not CONCURRENCY_EVENT_ID or not self.headers:
            return

        companions = [{"full_name": f"Friend {i}"} for i in range(random.randint(0, 2))]
        with self.client.post("/api/v1/bookings/",
            json={"event_id": CONCURRENCY_EVENT_ID, "payment_method": "free", "companions": companions},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: full, or already booked
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class GateUser(HttpUser):
    """
    TEST 2: Check-in - several scanners hit the same codes

    Run: locust -f locustfile.py --tags checkin -u 20 -r 10 --run-time 30s

    Every code must produce exactly one success; every other scan of it
    must come back as already_checked_in.
    """
    wait_time = between(0, 0.2)

    def on_start(self):
        if GATE["event_id"]:
            return
        organizer = sign_up(self.client)
        resp = self.client.post("/api/v1/events/", json={
            "title": "Gate Test Run",
            "category": "running",
            "date": future_date(),
            "price": 0,
            "capacity": 500,
        }, headers=organizer)
        if resp.status_code != 201:
            return
        event_id = resp.json()["id"]
        GATE.update(event_id=event_id, headers=organizer)

        for _ in range(20):
            runner = sign_up(self.client)
            resp = self.client.post("/api/v1/bookings/",
                json={"event_id": event_id, "payment_method": "free"},
                headers=runner)
            if resp.status_code == 201 and resp.json()["qr_token"]:
                GATE["tokens"].append(resp.json()["qr_token"])

    @tag("checkin")
    @task
    def scan(self):
        if not GATE["tokens"]:
            return
        with self.client.post("/api/v1/checkins/scan",
            json={"token": random.choice(GATE["tokens"]), "event_id": GATE["event_id"]},
            headers=GATE["headers"],
            catch_response=True,
        ) as resp:
            if resp.status_code == 200 and resp.json()["kind"] in ("success", "already_checked_in"):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code} {resp.text[:100]}")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = sign_up(self.client)

    @tag("edge")
    @task
    def unknown_event(self):
        """Book a non-existent event."""
        with self.client.post("/api/v1/bookings/",
            json={"event_id": "00000000-0000-0000-0000-000000000000", "payment_method": "gcash"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def blank_companion(self):
        with self.client.post("/api/v1/bookings/",
            json={
                "event_id": "00000000-0000-0000-0000-000000000000",
                "payment_method": "cash",
                "companions": [{"full_name": "   "}],
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")

    @tag("edge")
    @task
    def garbage_token(self):
        """Scan something that is not one of our codes."""
        with self.client.post("/api/v1/checkins/scan",
            json={"token": "not-a-code"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 200 and resp.json()["code"] == "invalid_token":
                resp.success()
            else:
                resp.failure(f"Expected invalid_token, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        with self.client.post("/api/v1/bookings/",
            json={"event_id": "00000000-0000-0000-0000-000000000000", "payment_method": "cash"},
            catch_response=True,
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")
