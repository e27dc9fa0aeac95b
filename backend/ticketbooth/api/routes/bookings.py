"""
Booking endpoints for the authenticated caller.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbooth.core.security import Caller, get_current_caller
from ticketbooth.db.session import get_read_db
from ticketbooth.schemas.booking import BookingResponse
from ticketbooth.services.booking_ledger import list_user_bookings

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("/", response_model=list[BookingResponse])
async def list_my_bookings(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_read_db),
):
    """All active bookings of the authenticated caller, newest first."""
    return await list_user_bookings(db, caller.id)
