"""
Waiting list entry for a sold-out event.

FIFO order is the order of `id`: the key is a monotonically increasing
sequence, so the earliest entry for an event is the one with the lowest id.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer

from ticketbooth.db.base import Base, TimestampMixin


class WaitingListEntry(Base, TimestampMixin):
    __tablename__ = "waiting_list"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    __table_args__ = (
        Index("ix_waiting_list_event_order", "event_id", "id"),
        # Never reuse the ids of dequeued entries
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<WaitingListEntry(id={self.id}, event={self.event_id}, user={self.user_id})>"
