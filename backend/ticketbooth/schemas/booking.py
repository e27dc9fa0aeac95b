"""
Pydantic schemas for bookings and waiting-list entries.
"""

from datetime import datetime

from pydantic import BaseModel


class BookingResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    ticket_id: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class WaitingListEntryResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    position: int
    created_at: datetime
