"""
Response schemas for allocation outcomes (book / cancel).
"""

from typing import Literal, Optional

from pydantic import BaseModel

from ticketbooth.schemas.booking import BookingResponse, WaitingListEntryResponse
from ticketbooth.schemas.event import EventResponse


class BookingOutcomeResponse(BaseModel):
    status: Literal["booked", "waitlisted"]
    message: str
    event: EventResponse
    booking: Optional[BookingResponse] = None
    waiting_list_entry: Optional[WaitingListEntryResponse] = None


class CancellationOutcomeResponse(BaseModel):
    status: Literal["promoted", "released"]
    message: str
    event_id: int
    cancelled_ticket_id: str
    promoted_user_id: Optional[int] = None
    promoted_ticket_id: Optional[str] = None
