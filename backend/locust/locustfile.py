"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags oversell     # 100 buyers, 10 tickets
  locust -f locustfile.py --tags doublescan   # many gates, one ticket
  locust -f locustfile.py --tags throughput   # cached listings
  locust -f locustfile.py --tags edge         # bad input
  locust -f locustfile.py                     # All tests

The double-scan scenario needs a staff account: register
LOCUST_STAFF_EMAIL on a server whose STAFF_EMAILS contains it.
"""

import os
import random
import string
from locust import HttpUser, task, between, tag, events
from datetime import datetime, timezone, timedelta

STAFF_EMAIL = os.environ.get("LOCUST_STAFF_EMAIL", "staff@boujeeevents.com")
STAFF_PASSWORD = os.environ.get("LOCUST_STAFF_PASSWORD", "staffpassword123")

# Shared state
EVENT_IDS = []
OVERSELL_EVENT_ID = None
SHARED_TICKET_QR = None
SCAN_OUTCOMES = {}


def random_email():
    return f"load_{random.randint(100000, 999999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=10))


def register_and_login(client, email=None, password="loadtest123"):
    email = email or random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "username": random_username(),
        "password": password,
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def create_event(client, headers, capacity, starts_in):
    resp = client.post(
        "/api/v1/events/",
        json={
            "title": f"Load Test Event {random.randint(1, 10000)}",
            "description": "Created by locust",
            "date": (datetime.now(timezone.utc) + starts_in).isoformat(),
            "location": "Test City",
            "venue": "Test Hall",
            "capacity": capacity,
        },
        headers=headers,
    )
    return resp.json()["id"] if resp.status_code == 201 else None


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print what a human should verify after the run."""
    if OVERSELL_EVENT_ID:
        print(f"\nOversell event {OVERSELL_EVENT_ID}: GET /api/v1/events/{OVERSELL_EVENT_ID}/capacity")
        print("  booked must be <= 10")
    if SCAN_OUTCOMES:
        print(f"\nDouble-scan outcomes: {SCAN_OUTCOMES}")
        print("  'valid' must be exactly 1")


class OversellUser(HttpUser):
    """
    TEST 1: 100 users -> 10 tickets

    Run: locust -f locustfile.py --tags oversell -u 100 -r 50 --run-time 30s
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = register_and_login(self.client)
        if self.headers and not OVERSELL_EVENT_ID:
            globals()["OVERSELL_EVENT_ID"] = create_event(
                self.client, self.headers, capacity=10, starts_in=timedelta(days=30)
            )

    @tag("oversell")
    @task
    def book_last_tickets(self):
        if not OVERSELL_EVENT_ID or not self.headers:
            return

        with self.client.post("/api/v1/bookings/",
            json={"event_id": OVERSELL_EVENT_ID, "quantity": 1},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409 is the expected sold-out answer
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class DoubleScanUser(HttpUser):
    """
    TEST 2: every gate scans the same ticket

    Run: locust -f locustfile.py --tags doublescan -u 50 -r 50 --run-time 20s

    The event starts in a few minutes, so its calendar day has begun and
    the ticket is scannable right away.
    """
    wait_time = between(0, 0.05)

    def on_start(self):
        self.headers = register_and_login(self.client, STAFF_EMAIL, STAFF_PASSWORD)
        if self.headers and not SHARED_TICKET_QR:
            event_id = create_event(self.client, self.headers, capacity=1, starts_in=timedelta(minutes=5))
            resp = self.client.post("/api/v1/bookings/",
                json={"event_id": event_id, "quantity": 1}, headers=self.headers)
            if resp.status_code == 201:
                globals()["SHARED_TICKET_QR"] = resp.json()["tickets"][0]["qr_data"]

    @tag("doublescan")
    @task
    def scan_shared_ticket(self):
        if not SHARED_TICKET_QR or not self.headers:
            return

        with self.client.post("/api/v1/tickets/check-in",
            json={"qr_data": SHARED_TICKET_QR},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Unexpected: {resp.status_code}")
                return
            body = resp.json()
            outcome = "valid" if body["valid"] else body["reason"]
            SCAN_OUTCOMES[outcome] = SCAN_OUTCOMES.get(outcome, 0) + 1
            if outcome in ("valid", "ticket_already_used"):
                resp.success()
            else:
                resp.failure(f"Unexpected outcome: {outcome}")


class ThroughputUser(HttpUser):
    """
    TEST 3: cached event listings

    Run with and without Redis and compare latency:
      locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/events/?page={page}&page_size=20",
            name="/api/v1/events/ [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def event_capacity(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}/capacity",
                name="/api/v1/events/{id}/capacity")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: bad input must produce clean 4xx answers, never 5xx

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post("/api/v1/bookings/",
            json={"event_id": "event_missing", "quantity": 1},
            headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def bad_quantities(self):
        for quantity in (-5, 0, 999999):
            with self.client.post("/api/v1/bookings/",
                json={"event_id": "event_missing", "quantity": quantity},
                headers=self.headers, catch_response=True, name="/api/v1/bookings/ [bad quantity]"
            ) as resp:
                self._expect(resp, (422,))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, (422,))

    @tag("edge")
    @task
    def scan_without_staff(self):
        with self.client.post("/api/v1/tickets/validate",
            json={"qr_data": "{}"},
            headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, (403,))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/bookings/",
            json={"event_id": "event_missing", "quantity": 1},
            catch_response=True
        ) as resp:
            self._expect(resp, (401,))
