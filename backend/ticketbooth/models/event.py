"""
Event model holding the ticket capacity triple.

Key design decisions:
- `available_tickets` and `booked_tickets` are denormalized counters that the
  allocation engine mutates under a row lock; they always sum to `total_tickets`
- The CHECK constraints are the last line of defence against a bad delta
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String

from ticketbooth.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    total_tickets = Column(Integer, nullable=False)
    available_tickets = Column(Integer, nullable=False)
    booked_tickets = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("total_tickets > 0", name="check_total_tickets_positive"),
        CheckConstraint("available_tickets >= 0", name="check_available_tickets_non_negative"),
        CheckConstraint("booked_tickets >= 0", name="check_booked_tickets_non_negative"),
        CheckConstraint(
            "available_tickets + booked_tickets = total_tickets",
            name="check_capacity_balanced",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, name={self.name}, "
            f"available={self.available_tickets}/{self.total_tickets})>"
        )
