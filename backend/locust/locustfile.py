"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Book/cancel storm on one small event
  locust -f locustfile.py --tags throughput   # Cached event listings
  locust -f locustfile.py                     # All tests

The contention scenario needs an admin account. Start the API with
ADMIN_EMAILS='["loadadmin@example.com"]' (or set LOCUST_ADMIN_EMAIL to an
address that is listed there).
"""

import os
import random
import string

from locust import HttpUser, between, events, tag, task

ADMIN_EMAIL = os.getenv("LOCUST_ADMIN_EMAIL", "loadadmin@example.com")
PASSWORD = "loadtest123"
CONTENTION_TICKETS = 10

# Shared state
CONTENTION_EVENT_ID = None


def random_email():
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
    return f"load_{suffix}@example.com"


def login(client, email, name):
    client.post("/api/v1/auth/register", json={"name": name, "email": email, "password": PASSWORD})
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: contention event with {CONTENTION_TICKETS} tickets, admin {ADMIN_EMAIL}")
    print("=" * 60)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    if CONTENTION_EVENT_ID:
        print(f"\nVerify with GET /api/v1/events/{CONTENTION_EVENT_ID}/status as admin:")
        print(f"  available_tickets + booked_tickets must equal {CONTENTION_TICKETS}\n")


class ContentionUser(HttpUser):
    """
    Many users book and cancel on the same event. Every book either gets a
    ticket or joins the waiting list; cancels hand tickets to the queue.

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 60s
    """
    wait_time = between(0, 0.2)

    def on_start(self):
        global CONTENTION_EVENT_ID

        if CONTENTION_EVENT_ID is None:
            admin_headers = login(self.client, ADMIN_EMAIL, "Load Admin")
            resp = self.client.post(
                "/api/v1/events/initialize",
                json={"name": "Contention Test Event", "total_tickets": CONTENTION_TICKETS},
                headers=admin_headers,
            )
            if resp.status_code == 201 and CONTENTION_EVENT_ID is None:
                CONTENTION_EVENT_ID = resp.json()["id"]
                print(f"\nCreated event {CONTENTION_EVENT_ID} with {CONTENTION_TICKETS} tickets\n")

        self.headers = login(self.client, random_email(), "Load User")

    def _accept(self, resp, expected):
        # 409 is a lock timeout under heavy contention: retryable, not a failure
        if resp.status_code in expected or resp.status_code == 409:
            resp.success()
        else:
            resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task(3)
    def book(self):
        if not CONTENTION_EVENT_ID or not self.headers:
            return

        with self.client.post(
            f"/api/v1/events/{CONTENTION_EVENT_ID}/book",
            headers=self.headers,
            name="/events/[id]/book",
            catch_response=True,
        ) as resp:
            self._accept(resp, {200})

    @tag("contention")
    @task(2)
    def cancel(self):
        if not CONTENTION_EVENT_ID or not self.headers:
            return

        with self.client.post(
            f"/api/v1/events/{CONTENTION_EVENT_ID}/cancel",
            headers=self.headers,
            name="/events/[id]/cancel",
            catch_response=True,
        ) as resp:
            # 400: no booking, e.g. still waiting in line
            self._accept(resp, {200, 400})


class ThroughputUser(HttpUser):
    """
    Cache effectiveness on the public listing.

    Run twice, with and without Redis, and compare latency percentiles:
      locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput")
    @task(5)
    def list_events(self):
        self.client.get(f"/api/v1/events/?page={random.randint(1, 3)}", name="/events/?page=[n]")

    @tag("throughput")
    @task(1)
    def get_event(self):
        if CONTENTION_EVENT_ID:
            self.client.get(f"/api/v1/events/{CONTENTION_EVENT_ID}", name="/events/[id]")
