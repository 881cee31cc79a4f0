"""
Tests for registration and inscriptions, including the capacity invariant.
"""

import asyncio

import pytest
from httpx import AsyncClient

from onelastevent.domain.errors import (
    AlreadyCancelledError,
    AlreadyRegisteredError,
    EventFullError,
    EventNotAvailableError,
    NotOwnerError,
)
from onelastevent.services import event_service, inscription_service, notification_service


@pytest.mark.asyncio
async def test_register_free_event(client: AsyncClient, attendee_headers, free_event, db_session):
    """Free event: inscription CONFIRMED at once and one spot taken."""
    response = await client.post(
        f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers
    )
    assert response.status_code == 201
    data = response.json()
    assert data["inscription"]["status"] == "CONFIRMED"
    assert data["inscription"]["event_id"] == free_event.id
    assert data["payment"] is None

    event = await event_service.get_event(db_session, free_event.id)
    assert event.current_participants == 1


@pytest.mark.asyncio
async def test_register_unauthenticated(client: AsyncClient, free_event):
    response = await client.post(f"/api/v1/events/{free_event.id}/inscriptions")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_register_full_event(
    client: AsyncClient, attendee_headers, other_headers, free_event, db_session
):
    """Second user on a capacity-1 event gets EVENT_FULL; the count stays 1."""
    first = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    assert first.status_code == 201

    second = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=other_headers)
    assert second.status_code == 409
    assert second.json()["code"] == "EVENT_FULL"

    event = await event_service.get_event(db_session, free_event.id)
    assert event.current_participants == 1


@pytest.mark.asyncio
async def test_register_twice(client: AsyncClient, attendee_headers, event_factory, db_session):
    """Same user registering twice gets ALREADY_REGISTERED and no second spot."""
    event = await event_factory(capacity=5)

    first = await client.post(f"/api/v1/events/{event.id}/inscriptions", headers=attendee_headers)
    assert first.status_code == 201

    second = await client.post(f"/api/v1/events/{event.id}/inscriptions", headers=attendee_headers)
    assert second.status_code == 409
    assert second.json()["code"] == "ALREADY_REGISTERED"

    refreshed = await event_service.get_event(db_session, event.id)
    assert refreshed.current_participants == 1


@pytest.mark.asyncio
async def test_register_draft_event(client: AsyncClient, attendee_headers, draft_event):
    response = await client.post(
        f"/api/v1/events/{draft_event.id}/inscriptions", headers=attendee_headers
    )
    assert response.status_code == 400
    assert response.json()["code"] == "EVENT_NOT_AVAILABLE"


@pytest.mark.asyncio
async def test_register_nonexistent_event(client: AsyncClient, attendee_headers):
    response = await client.post("/api/v1/events/99999/inscriptions", headers=attendee_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_releases_spot(client: AsyncClient, attendee_headers, free_event, db_session):
    register = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    inscription_id = register.json()["inscription"]["id"]

    response = await client.patch(
        f"/api/v1/inscriptions/{inscription_id}/cancel", headers=attendee_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "CANCELLED"
    assert data["refunded_payment_id"] is None

    event = await event_service.get_event(db_session, free_event.id)
    assert event.current_participants == 0


@pytest.mark.asyncio
async def test_cancel_already_cancelled(client: AsyncClient, attendee_headers, free_event):
    """Re-cancelling is an error, not a no-op."""
    register = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    inscription_id = register.json()["inscription"]["id"]

    await client.patch(f"/api/v1/inscriptions/{inscription_id}/cancel", headers=attendee_headers)
    response = await client.patch(
        f"/api/v1/inscriptions/{inscription_id}/cancel", headers=attendee_headers
    )
    assert response.status_code == 400
    assert response.json()["code"] == "ALREADY_CANCELLED"


@pytest.mark.asyncio
async def test_cancel_not_owner(client: AsyncClient, attendee_headers, other_headers, free_event):
    register = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    inscription_id = register.json()["inscription"]["id"]

    response = await client.patch(f"/api/v1/inscriptions/{inscription_id}/cancel", headers=other_headers)
    assert response.status_code == 403
    assert response.json()["code"] == "NOT_OWNER"


@pytest.mark.asyncio
async def test_admin_can_cancel_any_inscription(
    client: AsyncClient, attendee_headers, admin_headers, free_event
):
    register = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    inscription_id = register.json()["inscription"]["id"]

    response = await client.patch(f"/api/v1/inscriptions/{inscription_id}/cancel", headers=admin_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_reregister_reactivates_same_inscription(
    client: AsyncClient, attendee_headers, free_event, db_session
):
    """Cancel then register again: same id, CONFIRMED again, count restored."""
    first = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    inscription_id = first.json()["inscription"]["id"]
    await client.patch(f"/api/v1/inscriptions/{inscription_id}/cancel", headers=attendee_headers)

    again = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    assert again.status_code == 201
    assert again.json()["inscription"]["id"] == inscription_id
    assert again.json()["inscription"]["status"] == "CONFIRMED"

    event = await event_service.get_event(db_session, free_event.id)
    assert event.current_participants == 1


@pytest.mark.asyncio
async def test_list_my_inscriptions(
    client: AsyncClient, attendee_headers, free_event, paid_event
):
    await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    await client.post(f"/api/v1/events/{paid_event.id}/inscriptions", headers=attendee_headers)

    response = await client.get("/api/v1/inscriptions", headers=attendee_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2

    confirmed = await client.get("/api/v1/inscriptions?status=CONFIRMED", headers=attendee_headers)
    assert [i["event_id"] for i in confirmed.json()["inscriptions"]] == [free_event.id]


@pytest.mark.asyncio
async def test_get_inscription_visibility(
    client: AsyncClient, attendee_headers, other_headers, organizer_headers, free_event
):
    register = await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    inscription_id = register.json()["inscription"]["id"]

    assert (await client.get(f"/api/v1/inscriptions/{inscription_id}", headers=attendee_headers)).status_code == 200
    assert (await client.get(f"/api/v1/inscriptions/{inscription_id}", headers=organizer_headers)).status_code == 200
    assert (await client.get(f"/api/v1/inscriptions/{inscription_id}", headers=other_headers)).status_code == 403


@pytest.mark.asyncio
async def test_event_inscriptions_for_organizer_only(
    client: AsyncClient, attendee_headers, organizer_headers, free_event
):
    await client.post(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)

    response = await client.get(f"/api/v1/events/{free_event.id}/inscriptions", headers=organizer_headers)
    assert response.status_code == 200
    assert len(response.json()) == 1

    response = await client.get(f"/api/v1/events/{free_event.id}/inscriptions", headers=attendee_headers)
    assert response.status_code == 403


# Service level


@pytest.mark.asyncio
async def test_service_register_and_duplicate(db_session, free_event, attendee):
    inscription = await inscription_service.register(db_session, free_event.id, attendee.id)
    assert inscription.status == "CONFIRMED"

    with pytest.raises(AlreadyRegisteredError):
        await inscription_service.register(db_session, free_event.id, attendee.id)


@pytest.mark.asyncio
async def test_service_register_full(db_session, free_event, attendee, other_attendee):
    await inscription_service.register(db_session, free_event.id, attendee.id)

    with pytest.raises(EventFullError):
        await inscription_service.register(db_session, free_event.id, other_attendee.id)


@pytest.mark.asyncio
async def test_service_register_unpublished(db_session, draft_event, attendee):
    with pytest.raises(EventNotAvailableError):
        await inscription_service.register(db_session, draft_event.id, attendee.id)


@pytest.mark.asyncio
async def test_service_cancel_rules(db_session, free_event, attendee, other_attendee):
    inscription = await inscription_service.register(db_session, free_event.id, attendee.id)

    with pytest.raises(NotOwnerError):
        await inscription_service.cancel_inscription(db_session, inscription.id, other_attendee.id)

    cancelled, refunded = await inscription_service.cancel_inscription(
        db_session, inscription.id, attendee.id
    )
    assert cancelled.status == "CANCELLED"
    assert refunded is None

    with pytest.raises(AlreadyCancelledError):
        await inscription_service.cancel_inscription(db_session, inscription.id, attendee.id)


@pytest.mark.asyncio
async def test_confirm_is_idempotent(db_session, paid_event, attendee, monkeypatch):
    sent = []

    async def fake_send(email, event, inscription):
        sent.append(inscription.id)
        return True

    monkeypatch.setattr(notification_service, "send_registration_confirmation", fake_send)

    inscription = await inscription_service.register(db_session, paid_event.id, attendee.id)
    assert inscription.status == "PENDING"

    await inscription_service.confirm(db_session, inscription.id)
    confirmed = await inscription_service.confirm(db_session, inscription.id)

    assert confirmed.status == "CONFIRMED"
    assert sent == [inscription.id]


@pytest.mark.asyncio
async def test_concurrent_registrations_never_exceed_capacity(
    db_session, session_factory, event_factory
):
    """Many concurrent reservations for 3 spots: exactly 3 succeed."""
    event = await event_factory(capacity=3)

    async def reserve() -> bool:
        async with session_factory() as session:
            reserved = await event_service.reserve_capacity(session, event.id)
            await session.commit()
            return reserved

    results = await asyncio.gather(*(reserve() for _ in range(10)))

    assert sum(results) == 3
    refreshed = await event_service.get_event(db_session, event.id)
    assert refreshed.current_participants == 3
    assert refreshed.remaining_spots == 0


@pytest.mark.asyncio
async def test_release_capacity_floors_at_zero(db_session, event_factory):
    event = await event_factory(capacity=2, current_participants=0)

    await event_service.release_capacity(db_session, event.id)

    refreshed = await event_service.get_event(db_session, event.id)
    assert refreshed.current_participants == 0


@pytest.mark.asyncio
async def test_register_with_notes(client: AsyncClient, attendee_headers, free_event):
    response = await client.post(
        f"/api/v1/events/{free_event.id}/inscriptions",
        json={"notes": "Wheelchair access"},
        headers=attendee_headers,
    )
    assert response.status_code == 201
    assert response.json()["inscription"]["notes"] == "Wheelchair access"


@pytest.mark.asyncio
async def test_register_notes_too_long(client: AsyncClient, attendee_headers, free_event):
    response = await client.post(
        f"/api/v1/events/{free_event.id}/inscriptions",
        json={"notes": "x" * 501},
        headers=attendee_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reactivation_replaces_notes(db_session, free_event, attendee):
    inscription = await inscription_service.register(db_session, free_event.id, attendee.id, notes="First")
    await inscription_service.cancel_inscription(db_session, inscription.id, attendee.id)

    again = await inscription_service.register(db_session, free_event.id, attendee.id, notes="Second")

    assert again.id == inscription.id
    assert again.notes == "Second"
