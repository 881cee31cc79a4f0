"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags oversubscription  # Capacity invariant
  locust -f locustfile.py --tags paid              # Registration + mock payment
  locust -f locustfile.py --tags throughput        # Cached listing
  locust -f locustfile.py                          # All tests

The oversubscription event has 10 spots. After a run:
  SELECT current_participants FROM events WHERE id = X;   -- must be <= 10
  SELECT COUNT(*) FROM inscriptions
   WHERE event_id = X AND status IN ('PENDING', 'CONFIRMED');  -- same number
"""

import random
import uuid
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag

PASSWORD = "loadtest-password"

# Shared state, filled by the first organizer to start
SMALL_FREE_EVENT_ID = None
PAID_EVENT_ID = None
EVENT_IDS = []


def future(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def sign_up(client, role: str = "USER") -> dict:
    email = f"load_{uuid.uuid4().hex[:12]}@example.com"
    client.post("/api/v1/auth/register", json={
        "email": email,
        "full_name": "Load Tester",
        "password": PASSWORD,
        "role": role,
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


class OrganizerUser(HttpUser):
    """Creates the contended events once, then publishes new ones now and then."""

    fixed_count = 1
    wait_time = between(2, 5)

    def on_start(self):
        self.headers = sign_up(self.client, role="ORGANIZER")
        if not self.headers:
            return

        global SMALL_FREE_EVENT_ID, PAID_EVENT_ID
        if SMALL_FREE_EVENT_ID is None:
            SMALL_FREE_EVENT_ID = self._create("Oversubscribed Meetup", capacity=10, price="0")
        if PAID_EVENT_ID is None:
            PAID_EVENT_ID = self._create("Paid Workshop", capacity=50, price="20.00")

    def _create(self, title: str, capacity: int, price: str):
        resp = self.client.post(
            "/api/v1/events",
            json={
                "title": title,
                "location": "Load Venue",
                "start_datetime": future(),
                "capacity": capacity,
                "price": price,
                "status": "PUBLISHED",
            },
            headers=self.headers,
        )
        if resp.status_code == 201:
            EVENT_IDS.append(resp.json()["id"])
            return resp.json()["id"]
        return None

    @tag("throughput")
    @task
    def create_event(self):
        if self.headers:
            self._create(f"Event {random.randint(1, 10000)}", random.randint(10, 500), "0")


class AttendeeUser(HttpUser):
    """
    Every attendee fights for the 10 spots of the free event.
    201 and 409 (EVENT_FULL / ALREADY_REGISTERED) are both expected outcomes.
    """

    wait_time = between(0, 0.2)

    def on_start(self):
        self.headers = sign_up(self.client)

    @tag("oversubscription")
    @task(5)
    def register_small_event(self):
        if not SMALL_FREE_EVENT_ID or not self.headers:
            return

        with self.client.post(
            f"/api/v1/events/{SMALL_FREE_EVENT_ID}/inscriptions",
            headers=self.headers,
            name="/api/v1/events/{id}/inscriptions [free]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("paid")
    @task(2)
    def register_and_pay(self):
        if not PAID_EVENT_ID or not self.headers:
            return

        resp = self.client.post(
            f"/api/v1/events/{PAID_EVENT_ID}/payments",
            headers=self.headers,
            name="/api/v1/events/{id}/payments",
        )
        if resp.status_code != 201:
            return
        payment_id = resp.json()["payment_id"]
        self.client.post(
            f"/api/v1/payments/{payment_id}/mock",
            json={"simulate_failure": random.random() < 0.1},
            headers=self.headers,
            name="/api/v1/payments/{id}/mock",
        )


class BrowsingUser(HttpUser):
    """
    Cache effectiveness: run once with Redis and once with REDIS_ENABLED=false,
    then compare requests/sec and P95 latency.
    """

    wait_time = between(0.1, 0.5)

    @tag("throughput")
    @task(10)
    def list_events(self):
        page = random.randint(1, 5)
        self.client.get(
            f"/api/v1/events?page={page}&page_size=20",
            name="/api/v1/events [cached]",
        )

    @tag("throughput")
    @task(3)
    def search_events(self):
        self.client.get("/api/v1/events?search=Workshop&sort_by=price", name="/api/v1/events?search")

    @tag("throughput")
    @task(3)
    def event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")
