from ticketbooth.schemas.user import UserCreate, UserResponse, UserLogin, Token
from ticketbooth.schemas.booking import BookingResponse, WaitingListEntryResponse
from ticketbooth.schemas.event import (
    EventCreate,
    EventResponse,
    EventListResponse,
    EventStatusResponse,
    WaitingListClearedResponse,
)
from ticketbooth.schemas.allocation import BookingOutcomeResponse, CancellationOutcomeResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "BookingResponse", "WaitingListEntryResponse",
    "EventCreate", "EventResponse", "EventListResponse", "EventStatusResponse",
    "WaitingListClearedResponse",
    "BookingOutcomeResponse", "CancellationOutcomeResponse",
]
