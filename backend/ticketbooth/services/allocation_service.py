"""
Allocation engine: booking, cancellation and waiting-list promotion.

CONCURRENCY STRATEGY: Pessimistic row lock per event
====================================================

Problem:
  Two users try to book the last ticket simultaneously.
  Both read available_tickets=1, both decrement to 0, both succeed.
  Result: Overbooking. The same race on Cancel hands one freed ticket to
  two waiters, or frees it and reassigns it at once.

Solution:
  Book and Cancel each run as one transaction that starts with
  SELECT ... FOR UPDATE on the event row. Every read and write of the
  capacity counters, the bookings and the waiting list for that event
  happens while the lock is held, and the lock is released on commit or
  rollback. Operations on different events never touch the same lock.

  - Lock waits are bounded (DB_LOCK_TIMEOUT_MS) and surface as a retryable
    LockTimeoutError instead of hanging the request
  - The capacity CHECK constraints stay as the final safety net

Waiting list:
  When no ticket is left, Book enqueues the caller instead of failing.
  Cancel hands the freed ticket to the head of the queue (capacity stays
  unchanged) and leaves everyone behind the head in place. Only when the
  queue is empty does the ticket go back to available_tickets.

Notifications are dispatched after commit and never block or fail the
operation that produced them.
"""

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ticketbooth.core.exceptions import BookingNotFoundError, BookingSystemError, NotFoundError, ValidationError
from ticketbooth.core.logging import get_logger
from ticketbooth.core.metrics import (
    allocation_latency,
    record_allocation_failure,
    record_booking_outcome,
    record_cancellation_outcome,
)
from ticketbooth.core.security import Caller, Role, ensure_role
from ticketbooth.db.session import atomic
from ticketbooth.models.booking import Booking
from ticketbooth.models.event import Event
from ticketbooth.models.waiting_list import WaitingListEntry
from ticketbooth.services import booking_ledger, capacity_store, waiting_list
from ticketbooth.services.notification_service import NotificationService

logger = get_logger(__name__)

BOOKED = "booked"
WAITLISTED = "waitlisted"
PROMOTED = "promoted"
RELEASED = "released"


@dataclass
class BookingOutcome:
    status: str
    message: str
    event: Event
    booking: Optional[Booking] = None
    waiting_list_entry: Optional[WaitingListEntry] = None
    position: Optional[int] = None


@dataclass
class CancellationOutcome:
    status: str
    message: str
    event: Event
    cancelled_ticket_id: str
    promoted_user_id: Optional[int] = None
    promoted_booking: Optional[Booking] = None


@dataclass
class EventStatus:
    event: Event
    waiting_list_count: int
    bookings: list[Booking] = field(default_factory=list)


@asynccontextmanager
async def _tracked(operation: str):
    start = time.perf_counter()
    try:
        yield
    except BookingSystemError as exc:
        record_allocation_failure(operation, exc.code)
        raise
    finally:
        allocation_latency.labels(operation=operation).observe(time.perf_counter() - start)


async def initialize_event(
    db: AsyncSession,
    caller: Caller,
    total_tickets: Any,
    name: str,
    notifier: NotificationService,
) -> Event:
    """Create an event owned by the calling admin."""
    async with _tracked("initialize"):
        ensure_role(caller, Role.ADMIN)
        total = capacity_store.validate_total_tickets(total_tickets)
        if not name or not name.strip():
            raise ValidationError("Event name is required", {"field": "name"})

        async with atomic(db, "Something went wrong while creating the event"):
            event = await capacity_store.create_event(db, caller.id, total, name)

    notifier.notify(
        caller.id,
        "Event Created",
        f"Your event has been created successfully with ID: {event.id}, "
        f"and total tickets: {event.total_tickets}.",
    )
    return event


async def book(
    db: AsyncSession,
    caller: Caller,
    event_id: int,
    notifier: NotificationService,
) -> BookingOutcome:
    """
    Allocate one ticket to the caller, or queue them when the event is full.
    A second call by an already-booked user allocates a second ticket.
    """
    async with _tracked("book"):
        ensure_role(caller, Role.USER)

        async with atomic(db, "Something went wrong while booking the ticket"):
            event = await capacity_store.lock_event(db, event_id)
            if event is None:
                raise NotFoundError("Event not found", {"event_id": event_id})

            if event.available_tickets <= 0:
                entry = await waiting_list.enqueue(db, event.id, caller.id)
                position = await waiting_list.position_of(db, entry)
                outcome = BookingOutcome(
                    status=WAITLISTED,
                    message="No tickets available, you have been added to the waiting list",
                    event=event,
                    waiting_list_entry=entry,
                    position=position,
                )
            else:
                booking = await booking_ledger.create_booking(db, event.id, caller.id)
                await capacity_store.adjust_capacity(db, event, -1, +1)
                outcome = BookingOutcome(
                    status=BOOKED,
                    message="Ticket booked successfully",
                    event=event,
                    booking=booking,
                )

    record_booking_outcome(outcome.status)
    if outcome.status == BOOKED:
        logger.info(
            "ticket_booked",
            event_id=event.id,
            user_id=caller.id,
            ticket_id=outcome.booking.ticket_id,
            available=event.available_tickets,
        )
        notifier.notify(
            caller.id,
            "Ticket Booked",
            f"Your ticket has been booked successfully. This is your Ticket ID: {outcome.booking.ticket_id}.",
        )
    else:
        logger.info(
            "booking_waitlisted",
            event_id=event.id,
            user_id=caller.id,
            entry_id=outcome.waiting_list_entry.id,
            position=outcome.position,
        )
        notifier.notify(
            caller.id,
            "Added to Waiting List",
            f"Event {event.id} is sold out. You are number {outcome.position} on the waiting list "
            f"and will be booked automatically when a ticket is released.",
        )
    return outcome


async def cancel(
    db: AsyncSession,
    caller: Caller,
    event_id: int,
    notifier: NotificationService,
) -> CancellationOutcome:
    """
    Cancel the caller's booking. The freed ticket goes to the head of the
    waiting list if there is one, otherwise back to the available pool.
    """
    async with _tracked("cancel"):
        ensure_role(caller, Role.USER)

        async with atomic(db, "Something went wrong while cancelling the booking"):
            event = await capacity_store.lock_event(db, event_id)
            if event is None:
                raise NotFoundError("Event not found", {"event_id": event_id})

            # Looked up under the event lock so a concurrent cancel cannot race us
            booking = await booking_ledger.find_active_booking(db, event.id, caller.id)
            if booking is None:
                raise BookingNotFoundError()

            cancelled_ticket_id = booking.ticket_id
            await booking_ledger.delete_booking(db, booking)

            head = await waiting_list.dequeue_front(db, event.id)
            if head is not None:
                promoted = await booking_ledger.create_booking(db, event.id, head.user_id)
                outcome = CancellationOutcome(
                    status=PROMOTED,
                    message=(
                        "Your booking was cancelled. Ticket assigned to next user in waiting list "
                        f"(User ID: {head.user_id})."
                    ),
                    event=event,
                    cancelled_ticket_id=cancelled_ticket_id,
                    promoted_user_id=head.user_id,
                    promoted_booking=promoted,
                )
            else:
                await capacity_store.adjust_capacity(db, event, +1, -1)
                outcome = CancellationOutcome(
                    status=RELEASED,
                    message="Your booking was cancelled successfully, and a ticket was made available.",
                    event=event,
                    cancelled_ticket_id=cancelled_ticket_id,
                )

    record_cancellation_outcome(outcome.status)
    logger.info(
        "booking_cancelled",
        event_id=event.id,
        user_id=caller.id,
        ticket_id=cancelled_ticket_id,
        outcome=outcome.status,
    )
    notifier.notify(caller.id, "Booking Cancelled", outcome.message)

    if outcome.status == PROMOTED:
        logger.info(
            "booking_promoted",
            event_id=event.id,
            user_id=outcome.promoted_user_id,
            ticket_id=outcome.promoted_booking.ticket_id,
        )
        notifier.notify(
            outcome.promoted_user_id,
            "Ticket Booked",
            "A ticket was released and assigned to you from the waiting list. "
            f"This is your Ticket ID: {outcome.promoted_booking.ticket_id}.",
        )
    return outcome


async def get_status(db: AsyncSession, caller: Caller, event_id: int) -> EventStatus:
    """Counters, waiting-list length and bookings for one event. Read-only."""
    async with _tracked("status"):
        ensure_role(caller, Role.ADMIN)

        async with atomic(db, "Something went wrong while fetching the event status"):
            event = await capacity_store.get_event(db, event_id)
            waiting = await waiting_list.count_by_event(db, event.id)
            bookings = await booking_ledger.list_bookings(db, event.id)

    return EventStatus(event=event, waiting_list_count=waiting, bookings=bookings)


async def clear_waiting_list(
    db: AsyncSession,
    caller: Caller,
    event_id: int,
    notifier: NotificationService,
) -> int:
    """Drop every waiter for the event and tell each of them. Returns how many were removed."""
    async with _tracked("clear_waiting_list"):
        ensure_role(caller, Role.ADMIN)

        async with atomic(db, "Something went wrong while clearing the waiting list"):
            event = await capacity_store.lock_event(db, event_id)
            if event is None:
                raise NotFoundError("Event not found", {"event_id": event_id})

            waiter_ids = [entry.user_id for entry in await waiting_list.list_by_event(db, event.id)]
            removed = await waiting_list.clear_event(db, event.id)

    logger.info("waiting_list_cleared", event_id=event_id, admin_id=caller.id, removed=removed)
    for user_id in waiter_ids:
        notifier.notify(
            user_id,
            "Waiting List Closed",
            f"The waiting list for event {event_id} was closed before a ticket became available.",
        )
    return removed
