"""
Booking ledger: active bookings and their ticket identifiers.
"""

import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbooth.core.config import get_settings
from ticketbooth.models.booking import Booking, BookingStatus

settings = get_settings()


def generate_ticket_id() -> str:
    """Brand prefix plus a short random hex suffix, e.g. ``GreatBrands-1f9a03c2``."""
    return f"{settings.TICKET_PREFIX}-{secrets.token_hex(settings.TICKET_SUFFIX_BYTES)}"


async def create_booking(db: AsyncSession, event_id: int, user_id: int) -> Booking:
    booking = Booking(
        event_id=event_id,
        user_id=user_id,
        ticket_id=generate_ticket_id(),
        status=BookingStatus.BOOKED.value,
    )
    db.add(booking)
    await db.flush()
    return booking


async def find_active_booking(db: AsyncSession, event_id: int, user_id: int) -> Optional[Booking]:
    """The user's oldest booking for the event, if any."""
    result = await db.execute(
        select(Booking)
        .where(Booking.event_id == event_id, Booking.user_id == user_id)
        .order_by(Booking.id.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def delete_booking(db: AsyncSession, booking: Booking) -> None:
    await db.delete(booking)
    await db.flush()


async def list_bookings(db: AsyncSession, event_id: int) -> list[Booking]:
    result = await db.execute(
        select(Booking).where(Booking.event_id == event_id).order_by(Booking.id.asc())
    )
    return list(result.scalars().all())


async def list_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    result = await db.execute(
        select(Booking).where(Booking.user_id == user_id).order_by(Booking.id.desc())
    )
    return list(result.scalars().all())
