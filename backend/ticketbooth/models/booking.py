"""
Booking model: one allocated ticket for a user at an event.

Rows are deleted on cancellation, so every stored booking is active.
There is no (user_id, event_id) unique constraint: booking the same event
twice yields two tickets.
"""

import enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, UniqueConstraint

from ticketbooth.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    BOOKED = "booked"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    ticket_id = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.BOOKED.value)

    __table_args__ = (
        UniqueConstraint("ticket_id", name="uq_bookings_ticket_id"),
        CheckConstraint("status IN ('booked')", name="check_booking_status"),
        # Cancellation looks bookings up by (event, user)
        Index("ix_bookings_event_user", "event_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, ticket={self.ticket_id}, user={self.user_id}, event={self.event_id})>"
