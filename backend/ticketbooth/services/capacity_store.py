"""
Capacity store: event rows and their (total, available, booked) counters.

All writers run inside the caller's transaction. Counters are only ever
changed through `adjust_capacity`, on a row previously locked with
`lock_event`.
"""

from typing import Any, Optional

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbooth.core.config import get_settings
from ticketbooth.core.exceptions import CapacityInvariantError, NotFoundError, ValidationError
from ticketbooth.core.logging import get_logger
from ticketbooth.models.event import Event

logger = get_logger(__name__)
settings = get_settings()

# Capacity columns are 32-bit INTEGER
MAX_TOTAL_TICKETS = 2_147_483_647


def validate_total_tickets(total_tickets: Any) -> int:
    """Accept positive integers, or strings spelling one."""
    if total_tickets is None or (isinstance(total_tickets, str) and not total_tickets.strip()):
        raise ValidationError("Event total tickets are required", {"field": "total_tickets"})

    invalid = ValidationError("Total tickets must be a positive number", {"field": "total_tickets"})
    if isinstance(total_tickets, bool):
        raise invalid
    if isinstance(total_tickets, float) and not total_tickets.is_integer():
        raise invalid
    try:
        value = int(total_tickets)
    except (TypeError, ValueError):
        raise invalid
    if value <= 0 or value > MAX_TOTAL_TICKETS:
        raise invalid
    return value


async def create_event(
    db: AsyncSession,
    owner_id: int,
    total_tickets: Any,
    name: str,
) -> Event:
    """Create an event with every ticket available."""
    total = validate_total_tickets(total_tickets)
    if not name or not name.strip():
        raise ValidationError("Event name is required", {"field": "name"})

    event = Event(
        owner_id=owner_id,
        name=name.strip(),
        total_tickets=total,
        available_tickets=total,
        booked_tickets=0,
    )
    db.add(event)
    await db.flush()

    logger.info("event_created", event_id=event.id, owner_id=owner_id, total_tickets=total)
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(select(Event).where(Event.id == event_id))
    event = result.scalar_one_or_none()

    if not event:
        raise NotFoundError("Event not found", {"event_id": event_id})
    return event


async def lock_event(db: AsyncSession, event_id: int) -> Optional[Event]:
    """
    Load the event row with an exclusive lock held until the transaction ends.
    Concurrent Book/Cancel calls on the same event queue up here.
    """
    if db.get_bind().dialect.name == "postgresql":
        await db.execute(text(f"SET LOCAL lock_timeout = '{int(settings.DB_LOCK_TIMEOUT_MS)}ms'"))

    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def adjust_capacity(
    db: AsyncSession,
    event: Event,
    delta_available: int,
    delta_booked: int,
) -> Event:
    available = event.available_tickets + delta_available
    booked = event.booked_tickets + delta_booked

    if available < 0 or booked < 0 or available + booked != event.total_tickets:
        logger.error(
            "capacity_invariant_violation",
            event_id=event.id,
            available=event.available_tickets,
            booked=event.booked_tickets,
            delta_available=delta_available,
            delta_booked=delta_booked,
        )
        raise CapacityInvariantError(
            f"Capacity change ({delta_available:+d} available, {delta_booked:+d} booked) "
            f"rejected for event {event.id}"
        )

    event.available_tickets = available
    event.booked_tickets = booked
    await db.flush()
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Event], int]:
    """Paginated events, newest first."""
    total = (await db.execute(select(func.count()).select_from(Event))).scalar_one()

    result = await db.execute(
        select(Event)
        .order_by(Event.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total
