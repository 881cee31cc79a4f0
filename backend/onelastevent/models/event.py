"""
Event model with capacity accounting.

Key design decisions:
- `current_participants` is denormalized (avoids COUNT over inscriptions) and is
  only ever changed by conditional UPDATEs in event_service
- CHECK constraints keep 0 <= current_participants <= capacity at the DB level
- `start_datetime` is nullable so drafts can be saved before the date is known;
  publishing requires it
"""

from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Numeric, JSON, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from onelastevent.db.base import Base, TimestampMixin
from onelastevent.domain.status import EventStatus


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(500), nullable=True)
    start_datetime = Column(DateTime(timezone=True), nullable=True)
    end_datetime = Column(DateTime(timezone=True), nullable=True)
    capacity = Column(Integer, nullable=False, default=100)
    current_participants = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    currency = Column(String(3), nullable=False, default="EUR")
    status = Column(String(20), nullable=False, default=EventStatus.DRAFT.value)
    image_url = Column(String(500), nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    organizer = relationship("User", back_populates="events")
    inscriptions = relationship("Inscription", back_populates="event")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        CheckConstraint("current_participants >= 0", name="check_participants_non_negative"),
        CheckConstraint("current_participants <= capacity", name="check_participants_lte_capacity"),
        CheckConstraint("price >= 0", name="check_event_price_non_negative"),
        CheckConstraint("status IN ('DRAFT', 'PUBLISHED', 'CANCELLED')", name="check_event_status"),
        Index("ix_events_organizer_id", "organizer_id"),
        Index("ix_events_start_datetime", "start_datetime"),
        # Public listing: WHERE status = 'PUBLISHED' ORDER BY start_datetime
        Index("ix_events_status_start", "status", "start_datetime"),
        Index("ix_events_price", "price"),
    )

    @property
    def is_free(self) -> bool:
        return Decimal(self.price or 0) == 0

    @property
    def remaining_spots(self) -> int:
        return max(0, self.capacity - self.current_participants)

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, title={self.title}, status={self.status}, "
            f"participants={self.current_participants}/{self.capacity})>"
        )
