"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ticketbooth.schemas.booking import BookingResponse


class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    # Checked by the capacity store: missing, non-numeric and non-positive values are 400s
    total_tickets: Any = None


class EventResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    total_tickets: int
    available_tickets: int
    booked_tickets: int
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class EventStatusResponse(BaseModel):
    event_id: int
    total_tickets: int
    available_tickets: int
    booked_tickets: int
    waiting_list_count: int
    bookings: list[BookingResponse]


class WaitingListClearedResponse(BaseModel):
    event_id: int
    removed: int
