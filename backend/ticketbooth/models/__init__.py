from ticketbooth.models.user import User
from ticketbooth.models.event import Event
from ticketbooth.models.booking import Booking, BookingStatus
from ticketbooth.models.waiting_list import WaitingListEntry

__all__ = ["User", "Event", "Booking", "BookingStatus", "WaitingListEntry"]
