"""
Tests for event endpoints: initialization, listing and admin status.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_initialize_event(client: AsyncClient, admin_headers):
    response = await client.post(
        "/api/v1/events/initialize",
        json={"name": "Jazz Night", "total_tickets": 10},
        headers=admin_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Jazz Night"
    assert data["total_tickets"] == 10
    assert data["available_tickets"] == 10
    assert data["booked_tickets"] == 0


@pytest.mark.asyncio
async def test_initialize_event_accepts_numeric_string(client: AsyncClient, admin_headers):
    response = await client.post(
        "/api/v1/events/initialize",
        json={"name": "Jazz Night", "total_tickets": "25"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["total_tickets"] == 25


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload,message",
    [
        ({"name": "No Total"}, "Event total tickets are required"),
        ({"name": "Negative", "total_tickets": -5}, "Total tickets must be a positive number"),
        ({"name": "Zero", "total_tickets": 0}, "Total tickets must be a positive number"),
        ({"name": "Words", "total_tickets": "abc"}, "Total tickets must be a positive number"),
        ({"name": "Huge", "total_tickets": 10**20}, "Total tickets must be a positive number"),
    ],
)
async def test_initialize_event_invalid_total(client: AsyncClient, admin_headers, payload, message):
    response = await client.post("/api/v1/events/initialize", json=payload, headers=admin_headers)

    assert response.status_code == 400
    data = response.json()
    assert data["detail"] == message
    assert data["code"] == "VALIDATION_ERROR"
    assert data["rolled_back"] is False

    listing = await client.get("/api/v1/events/")
    assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_initialize_event_missing_name(client: AsyncClient, admin_headers):
    """Schema errors are reported as 400 as well."""
    response = await client.post(
        "/api/v1/events/initialize", json={"total_tickets": 5}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_initialize_event_requires_admin(client: AsyncClient, user_headers):
    response = await client.post(
        "/api/v1/events/initialize",
        json={"name": "Sneaky", "total_tickets": 5},
        headers=user_headers[0],
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "You are not authorized to perform this action"


@pytest.mark.asyncio
async def test_initialize_event_unauthenticated(client: AsyncClient):
    response = await client.post("/api/v1/events/initialize", json={"name": "Anon", "total_tickets": 5})
    assert response.status_code == 401
    assert response.json()["detail"] == "Authorization header is missing"


@pytest.mark.asyncio
async def test_invalid_token(client: AsyncClient):
    response = await client.post(
        "/api/v1/events/initialize",
        json={"name": "Forged", "total_tickets": 5},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"


@pytest.mark.asyncio
async def test_list_events(client: AsyncClient, make_event):
    await make_event(total_tickets=5, name="Older")
    await make_event(total_tickets=5, name="Newer")

    response = await client.get("/api/v1/events/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [e["name"] for e in data["events"]] == ["Newer", "Older"]
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_list_events_pagination(client: AsyncClient, make_event):
    for i in range(5):
        await make_event(total_tickets=5, name=f"Event {i}")

    response = await client.get("/api/v1/events/?page=2&page_size=2")
    data = response.json()
    assert data["total"] == 5
    assert data["page"] == 2
    assert len(data["events"]) == 2


@pytest.mark.asyncio
async def test_get_event(client: AsyncClient, make_event):
    event = await make_event(total_tickets=7)

    response = await client.get(f"/api/v1/events/{event.id}")
    assert response.status_code == 200
    assert response.json()["available_tickets"] == 7


@pytest.mark.asyncio
async def test_get_event_not_found(client: AsyncClient):
    response = await client.get("/api/v1/events/99999")
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_event_status(client: AsyncClient, admin_headers, user_headers, make_event):
    event = await make_event(total_tickets=1)
    await client.post(f"/api/v1/events/{event.id}/book", headers=user_headers[0])
    await client.post(f"/api/v1/events/{event.id}/book", headers=user_headers[1])

    response = await client.get(f"/api/v1/events/{event.id}/status", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["event_id"] == event.id
    assert data["total_tickets"] == 1
    assert data["available_tickets"] == 0
    assert data["booked_tickets"] == 1
    assert data["waiting_list_count"] == 1
    assert len(data["bookings"]) == 1
    assert data["bookings"][0]["ticket_id"].startswith("GreatBrands-")


@pytest.mark.asyncio
async def test_event_status_requires_admin(client: AsyncClient, user_headers, make_event):
    event = await make_event(total_tickets=1)
    response = await client.get(f"/api/v1/events/{event.id}/status", headers=user_headers[0])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_event_status_not_found(client: AsyncClient, admin_headers):
    response = await client.get("/api/v1/events/99999/status", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_clear_waiting_list(client: AsyncClient, admin_headers, user_headers, make_event):
    event = await make_event(total_tickets=1)
    for headers in user_headers[:3]:
        await client.post(f"/api/v1/events/{event.id}/book", headers=headers)

    response = await client.delete(f"/api/v1/events/{event.id}/waiting-list", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"event_id": event.id, "removed": 2}

    status_response = await client.get(f"/api/v1/events/{event.id}/status", headers=admin_headers)
    assert status_response.json()["waiting_list_count"] == 0


@pytest.mark.asyncio
async def test_clear_waiting_list_requires_admin(client: AsyncClient, user_headers, make_event):
    event = await make_event(total_tickets=1)
    response = await client.delete(f"/api/v1/events/{event.id}/waiting-list", headers=user_headers[0])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient, admin_headers):
    await client.post(
        "/api/v1/events/initialize",
        json={"name": "Counted", "total_tickets": 1},
        headers=admin_headers,
    )
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "ticket_allocation_latency_seconds" in response.text


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"
