"""
Event endpoints: initialization, allocation (book / cancel), admin status.
Public listings are cached in Redis and invalidated whenever capacity changes.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbooth.core.logging import get_logger
from ticketbooth.core.security import Caller, get_current_caller
from ticketbooth.db.session import get_db, get_read_db
from ticketbooth.schemas.allocation import BookingOutcomeResponse, CancellationOutcomeResponse
from ticketbooth.schemas.booking import BookingResponse, WaitingListEntryResponse
from ticketbooth.schemas.event import (
    EventCreate,
    EventListResponse,
    EventResponse,
    EventStatusResponse,
    WaitingListClearedResponse,
)
from ticketbooth.services import allocation_service
from ticketbooth.services.allocation_service import BookingOutcome, CancellationOutcome
from ticketbooth.services.cache_service import get_cached_events, invalidate_event_cache, set_cached_events
from ticketbooth.services.capacity_store import get_event, list_events
from ticketbooth.services.notification_service import NotificationService, get_notification_service

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


def _booking_outcome_response(outcome: BookingOutcome) -> BookingOutcomeResponse:
    entry = None
    if outcome.waiting_list_entry is not None:
        waiting = outcome.waiting_list_entry
        entry = WaitingListEntryResponse(
            id=waiting.id,
            event_id=waiting.event_id,
            user_id=waiting.user_id,
            position=outcome.position,
            created_at=waiting.created_at,
        )

    return BookingOutcomeResponse(
        status=outcome.status,
        message=outcome.message,
        event=EventResponse.model_validate(outcome.event),
        booking=BookingResponse.model_validate(outcome.booking) if outcome.booking else None,
        waiting_list_entry=entry,
    )


def _cancellation_outcome_response(outcome: CancellationOutcome) -> CancellationOutcomeResponse:
    promoted = outcome.promoted_booking
    return CancellationOutcomeResponse(
        status=outcome.status,
        message=outcome.message,
        event_id=outcome.event.id,
        cancelled_ticket_id=outcome.cancelled_ticket_id,
        promoted_user_id=outcome.promoted_user_id,
        promoted_ticket_id=promoted.ticket_id if promoted else None,
    )


@router.post("/initialize", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def initialize_event_endpoint(
    event_data: EventCreate,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Create an event with a fixed number of tickets. Admins only."""
    event = await allocation_service.initialize_event(
        db, caller, event_data.total_tickets, event_data.name, notifier
    )
    await invalidate_event_cache()
    return event


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_read_db),
):
    """
    List events with pagination, newest first.
    Served from Redis when possible; counts may lag a booking by one request.
    """
    cached = await get_cached_events(page, page_size)
    if cached:
        logger.debug("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await list_events(db, page, page_size)
    response_data = {
        "events": [EventResponse.model_validate(e).model_dump() for e in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_events(page, page_size, response_data)
    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(event_id: int, db: AsyncSession = Depends(get_read_db)):
    """Single event with live ticket counts. Not cached."""
    return await get_event(db, event_id)


@router.post("/{event_id}/book", response_model=BookingOutcomeResponse)
async def book_ticket_endpoint(
    event_id: int,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    """
    Book one ticket. When the event is sold out the caller is put on the
    waiting list instead and booked automatically once a ticket is released.
    """
    outcome = await allocation_service.book(db, caller, event_id, notifier)
    if outcome.status == allocation_service.BOOKED:
        await invalidate_event_cache()
    return _booking_outcome_response(outcome)


@router.post("/{event_id}/cancel", response_model=CancellationOutcomeResponse)
async def cancel_booking_endpoint(
    event_id: int,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Cancel the caller's booking; the ticket goes to the next waiter if any."""
    outcome = await allocation_service.cancel(db, caller, event_id, notifier)
    if outcome.status == allocation_service.RELEASED:
        await invalidate_event_cache()
    return _cancellation_outcome_response(outcome)


@router.get("/{event_id}/status", response_model=EventStatusResponse)
async def event_status_endpoint(
    event_id: int,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Ticket counters, waiting-list length and bookings. Admins only."""
    snapshot = await allocation_service.get_status(db, caller, event_id)
    event = snapshot.event
    return EventStatusResponse(
        event_id=event.id,
        total_tickets=event.total_tickets,
        available_tickets=event.available_tickets,
        booked_tickets=event.booked_tickets,
        waiting_list_count=snapshot.waiting_list_count,
        bookings=[BookingResponse.model_validate(b) for b in snapshot.bookings],
    )


@router.delete("/{event_id}/waiting-list", response_model=WaitingListClearedResponse)
async def clear_waiting_list_endpoint(
    event_id: int,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    """Close the waiting list, dropping every queued user. Admins only."""
    removed = await allocation_service.clear_waiting_list(db, caller, event_id, notifier)
    return WaitingListClearedResponse(event_id=event_id, removed=removed)
