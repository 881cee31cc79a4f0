"""
Tests for event endpoints: creation, visibility, lifecycle and updates.
"""

import pytest
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from httpx import AsyncClient

from onelastevent.services import event_service


def future(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, organizer_headers):
    """Organizer can create an event; DRAFT by default with all spots free."""
    response = await client.post(
        "/api/v1/events",
        json={
            "title": "Python Conference 2026",
            "description": "Annual Python gathering",
            "start_datetime": future(),
            "location": "Convention Center",
            "capacity": 500,
            "price": "49.90",
            "tags": ["python", "conference"],
        },
        headers=organizer_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Python Conference 2026"
    assert data["status"] == "DRAFT"
    assert data["capacity"] == 500
    assert data["current_participants"] == 0
    assert data["remaining_spots"] == 500
    assert data["is_free"] is False
    assert data["currency"] == "EUR"


@pytest.mark.asyncio
async def test_create_event_unauthenticated(client: AsyncClient):
    """Unauthenticated request returns 401."""
    response = await client.post("/api/v1/events", json={"title": "Unauthorized Event"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_requires_organizer_role(client: AsyncClient, attendee_headers):
    response = await client.post(
        "/api/v1/events",
        json={"title": "Not Mine To Host", "start_datetime": future()},
        headers=attendee_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_event_past_date(client: AsyncClient, organizer_headers):
    """Event starting in the past returns 400."""
    past_date = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    response = await client.post(
        "/api/v1/events",
        json={"title": "Past Event", "start_datetime": past_date},
        headers=organizer_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_EVENT_DATA"


@pytest.mark.asyncio
async def test_create_event_invalid_capacity(client: AsyncClient, organizer_headers):
    response = await client.post(
        "/api/v1/events",
        json={"title": "Nobody Fits", "capacity": 0},
        headers=organizer_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_event_negative_price(client: AsyncClient, organizer_headers):
    response = await client.post(
        "/api/v1/events",
        json={"title": "We Pay You", "price": "-1"},
        headers=organizer_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_published_event_requires_start(client: AsyncClient, organizer_headers):
    response = await client.post(
        "/api/v1/events",
        json={"title": "Someday", "status": "PUBLISHED"},
        headers=organizer_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INCOMPLETE_EVENT"


@pytest.mark.asyncio
async def test_get_event(client: AsyncClient, free_event):
    response = await client.get(f"/api/v1/events/{free_event.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == free_event.id
    assert data["is_free"] is True


@pytest.mark.asyncio
async def test_get_nonexistent_event(client: AsyncClient):
    """Non-existent event returns 404."""
    response = await client.get("/api/v1/events/99999")
    assert response.status_code == 404
    assert response.json() == {"error": "Event not found", "code": "EVENT_NOT_FOUND"}


@pytest.mark.asyncio
async def test_draft_hidden_from_public(
    client: AsyncClient, draft_event, organizer_headers, attendee_headers, admin_headers
):
    assert (await client.get(f"/api/v1/events/{draft_event.id}")).status_code == 404
    assert (
        await client.get(f"/api/v1/events/{draft_event.id}", headers=attendee_headers)
    ).status_code == 404
    assert (
        await client.get(f"/api/v1/events/{draft_event.id}", headers=organizer_headers)
    ).status_code == 200
    assert (
        await client.get(f"/api/v1/events/{draft_event.id}", headers=admin_headers)
    ).status_code == 200


@pytest.mark.asyncio
async def test_list_events_only_published(client: AsyncClient, free_event, paid_event, draft_event):
    """Anonymous listing never includes drafts."""
    response = await client.get("/api/v1/events")
    assert response.status_code == 200
    data = response.json()
    ids = {e["id"] for e in data["events"]}
    assert ids == {free_event.id, paid_event.id}
    assert data["total"] == 2
    assert data["total_pages"] == 1
    assert data["cached"] is False  # Redis disabled in tests


@pytest.mark.asyncio
async def test_list_events_pagination(client: AsyncClient, event_factory):
    """Pagination returns correct page sizes."""
    for i in range(5):
        await event_factory(title=f"Event {i}", start_datetime=datetime.now(timezone.utc) + timedelta(days=i + 1))

    response = await client.get("/api/v1/events?page=1&page_size=2")
    data = response.json()
    assert len(data["events"]) == 2
    assert data["total"] == 5
    assert data["total_pages"] == 3
    assert [e["title"] for e in data["events"]] == ["Event 0", "Event 1"]

    response = await client.get("/api/v1/events?page=3&page_size=2")
    assert [e["title"] for e in response.json()["events"]] == ["Event 4"]


@pytest.mark.asyncio
async def test_list_events_filters(client: AsyncClient, event_factory):
    await event_factory(title="Jazz Night", location="Lisbon", price=Decimal("15.00"))
    await event_factory(title="Rock Night", location="Porto", price=Decimal("40.00"))
    await event_factory(title="Poetry Reading", description="jazz inspired", location="Lisbon")

    search = (await client.get("/api/v1/events?search=jazz")).json()
    assert {e["title"] for e in search["events"]} == {"Jazz Night", "Poetry Reading"}

    located = (await client.get("/api/v1/events?location=porto")).json()
    assert [e["title"] for e in located["events"]] == ["Rock Night"]

    priced = (await client.get("/api/v1/events?min_price=10&max_price=20")).json()
    assert [e["title"] for e in priced["events"]] == ["Jazz Night"]

    by_price = (await client.get("/api/v1/events?sort_by=price&sort_order=desc")).json()
    assert [e["title"] for e in by_price["events"]] == ["Rock Night", "Jazz Night", "Poetry Reading"]


@pytest.mark.asyncio
async def test_organizer_sees_own_drafts_in_listing(
    client: AsyncClient, organizer, organizer_headers, draft_event, free_event
):
    response = await client.get(
        f"/api/v1/events?organizer_id={organizer.id}&status=DRAFT",
        headers=organizer_headers,
    )
    assert [e["id"] for e in response.json()["events"]] == [draft_event.id]


@pytest.mark.asyncio
async def test_status_filter_ignored_for_public(client: AsyncClient, draft_event, free_event):
    response = await client.get("/api/v1/events?status=DRAFT")
    assert [e["id"] for e in response.json()["events"]] == [free_event.id]


@pytest.mark.asyncio
async def test_my_events(client: AsyncClient, organizer_headers, draft_event, free_event):
    response = await client.get("/api/v1/events/mine", headers=organizer_headers)
    assert response.status_code == 200
    assert {e["id"] for e in response.json()} == {draft_event.id, free_event.id}


@pytest.mark.asyncio
async def test_publish_without_start_date(client: AsyncClient, organizer_headers, draft_event, db_session):
    """Publishing an undated draft fails and the event stays DRAFT."""
    response = await client.post(
        f"/api/v1/events/{draft_event.id}/publish", headers=organizer_headers
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INCOMPLETE_EVENT"

    event = await event_service.get_event(db_session, draft_event.id)
    assert event.status == "DRAFT"


@pytest.mark.asyncio
async def test_publish_after_setting_date(client: AsyncClient, organizer_headers, draft_event):
    response = await client.patch(
        f"/api/v1/events/{draft_event.id}",
        json={"start_datetime": future()},
        headers=organizer_headers,
    )
    assert response.status_code == 200

    response = await client.post(
        f"/api/v1/events/{draft_event.id}/publish", headers=organizer_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "PUBLISHED"

    again = await client.post(f"/api/v1/events/{draft_event.id}/publish", headers=organizer_headers)
    assert again.status_code == 400
    assert again.json()["code"] == "ALREADY_PUBLISHED"


@pytest.mark.asyncio
async def test_publish_not_owner(client: AsyncClient, draft_event, attendee_headers):
    response = await client.post(
        f"/api/v1/events/{draft_event.id}/publish", headers=attendee_headers
    )
    assert response.status_code == 403
    assert response.json()["code"] == "NOT_OWNER"


@pytest.mark.asyncio
async def test_admin_can_manage_any_event(client: AsyncClient, free_event, admin_headers):
    response = await client.post(f"/api/v1/events/{free_event.id}/unpublish", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "DRAFT"


@pytest.mark.asyncio
async def test_unpublish_requires_published(client: AsyncClient, draft_event, organizer_headers):
    response = await client.post(
        f"/api/v1/events/{draft_event.id}/unpublish", headers=organizer_headers
    )
    assert response.status_code == 400
    assert response.json()["code"] == "NOT_PUBLISHED"


@pytest.mark.asyncio
async def test_cancel_event_is_terminal(client: AsyncClient, free_event, organizer_headers):
    response = await client.post(f"/api/v1/events/{free_event.id}/cancel", headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"

    again = await client.post(f"/api/v1/events/{free_event.id}/cancel", headers=organizer_headers)
    assert again.status_code == 400
    assert again.json()["code"] == "ALREADY_CANCELLED"

    publish = await client.post(f"/api/v1/events/{free_event.id}/publish", headers=organizer_headers)
    assert publish.json()["code"] == "EVENT_CANCELLED"

    update = await client.patch(
        f"/api/v1/events/{free_event.id}", json={"title": "Back From The Dead"}, headers=organizer_headers
    )
    assert update.status_code == 400
    assert update.json()["code"] == "EVENT_CANCELLED"


@pytest.mark.asyncio
async def test_update_event(client: AsyncClient, paid_event, organizer_headers):
    response = await client.patch(
        f"/api/v1/events/{paid_event.id}",
        json={"title": "Renamed Workshop", "capacity": 25, "location": None},
        headers=organizer_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Renamed Workshop"
    assert data["capacity"] == 25
    assert data["location"] is None
    assert Decimal(data["price"]) == Decimal("20")


@pytest.mark.asyncio
async def test_update_capacity_below_participants(
    client: AsyncClient, event_factory, organizer_headers
):
    event = await event_factory(capacity=5, current_participants=3)

    response = await client.patch(
        f"/api/v1/events/{event.id}", json={"capacity": 2}, headers=organizer_headers
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATE"

    response = await client.patch(
        f"/api/v1/events/{event.id}", json={"capacity": 3}, headers=organizer_headers
    )
    assert response.status_code == 200
    assert response.json()["remaining_spots"] == 0


@pytest.mark.asyncio
async def test_update_not_owner(client: AsyncClient, paid_event, other_headers):
    response = await client.patch(
        f"/api/v1/events/{paid_event.id}", json={"title": "Hijacked"}, headers=other_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_price_locked_while_registrations_active(
    client: AsyncClient, paid_event, organizer_headers, attendee_headers
):
    init = await client.post(f"/api/v1/events/{paid_event.id}/payments", headers=attendee_headers)
    assert init.status_code == 201

    response = await client.patch(
        f"/api/v1/events/{paid_event.id}", json={"price": "0"}, headers=organizer_headers
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATE"

    response = await client.patch(
        f"/api/v1/events/{paid_event.id}", json={"currency": "USD"}, headers=organizer_headers
    )
    assert response.status_code == 400

    # The same price and other fields are still editable
    response = await client.patch(
        f"/api/v1/events/{paid_event.id}",
        json={"price": "20.00", "title": "Renamed Workshop"},
        headers=organizer_headers,
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Renamed Workshop"

    # The pending payment still matches the event price
    retry = await client.post(f"/api/v1/events/{paid_event.id}/payments", headers=attendee_headers)
    assert retry.status_code == 201
    assert retry.json()["payment_id"] == init.json()["payment_id"]


@pytest.mark.asyncio
async def test_price_change_without_registrations(client: AsyncClient, paid_event, organizer_headers):
    response = await client.patch(
        f"/api/v1/events/{paid_event.id}",
        json={"price": "35.50", "currency": "USD"},
        headers=organizer_headers,
    )
    assert response.status_code == 200
    assert Decimal(response.json()["price"]) == Decimal("35.50")
    assert response.json()["currency"] == "USD"


@pytest.mark.asyncio
async def test_delete_event(client: AsyncClient, draft_event, organizer_headers, db_session):
    response = await client.delete(f"/api/v1/events/{draft_event.id}", headers=organizer_headers)
    assert response.status_code == 204

    response = await client.get(f"/api/v1/events/{draft_event.id}", headers=organizer_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_event_not_owner(client: AsyncClient, draft_event, other_headers, admin_headers):
    response = await client.delete(f"/api/v1/events/{draft_event.id}", headers=other_headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/events/{draft_event.id}", headers=admin_headers)
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_delete_event_with_registrations(
    client: AsyncClient, free_event, organizer_headers, attendee_headers
):
    """Events keep their registration history; even cancelled inscriptions block deletion."""
    registered = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    inscription_id = registered.json()["inscription"]["id"]
    await client.patch(f"/api/v1/inscriptions/{inscription_id}/cancel", headers=attendee_headers)

    response = await client.delete(f"/api/v1/events/{free_event.id}", headers=organizer_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATE"

    response = await client.get(f"/api/v1/events/{free_event.id}")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_delete_unknown_event(client: AsyncClient, organizer_headers):
    response = await client.delete("/api/v1/events/99999", headers=organizer_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "EVENT_NOT_FOUND"
