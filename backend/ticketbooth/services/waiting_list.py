"""
Waiting list queue: per-event FIFO of users waiting for a seat.

Entries are read in `id` order, which is insertion order. Promotion pops only
the head; everyone behind it keeps their place.
"""

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbooth.models.waiting_list import WaitingListEntry


async def enqueue(db: AsyncSession, event_id: int, user_id: int) -> WaitingListEntry:
    entry = WaitingListEntry(event_id=event_id, user_id=user_id)
    db.add(entry)
    await db.flush()
    return entry


async def list_by_event(db: AsyncSession, event_id: int) -> list[WaitingListEntry]:
    result = await db.execute(
        select(WaitingListEntry)
        .where(WaitingListEntry.event_id == event_id)
        .order_by(WaitingListEntry.id.asc())
    )
    return list(result.scalars().all())


async def dequeue_front(db: AsyncSession, event_id: int) -> Optional[WaitingListEntry]:
    """Remove and return the earliest entry for the event."""
    result = await db.execute(
        select(WaitingListEntry)
        .where(WaitingListEntry.event_id == event_id)
        .order_by(WaitingListEntry.id.asc())
        .limit(1)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        return None

    await db.delete(entry)
    await db.flush()
    return entry


async def clear_event(db: AsyncSession, event_id: int) -> int:
    result = await db.execute(
        delete(WaitingListEntry).where(WaitingListEntry.event_id == event_id)
    )
    return result.rowcount


async def count_by_event(db: AsyncSession, event_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(WaitingListEntry)
        .where(WaitingListEntry.event_id == event_id)
    )
    return result.scalar_one()


async def position_of(db: AsyncSession, entry: WaitingListEntry) -> int:
    """1-based place in line."""
    result = await db.execute(
        select(func.count())
        .select_from(WaitingListEntry)
        .where(
            WaitingListEntry.event_id == entry.event_id,
            WaitingListEntry.id <= entry.id,
        )
    )
    return result.scalar_one()
