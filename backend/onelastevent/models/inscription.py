"""
Inscription model: one user's registration for one event.

Key design decisions:
- Unique constraint on (event_id, user_id): one row per pair, ever. A cancelled
  inscription is reactivated instead of duplicated, which also makes "at most one
  active inscription per pair" hold by construction
- Status field allows cancellation without deleting records
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from onelastevent.db.base import Base, TimestampMixin
from onelastevent.domain.status import InscriptionStatus


class Inscription(Base, TimestampMixin):
    __tablename__ = "inscriptions"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=InscriptionStatus.PENDING.value)
    notes = Column(Text, nullable=True)

    event = relationship("Event", back_populates="inscriptions")
    user = relationship("User", back_populates="inscriptions")
    payments = relationship("Payment", back_populates="inscription")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_inscription_event_user"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED')", name="check_inscription_status"
        ),
    )

    def __repr__(self) -> str:
        return f"<Inscription(id={self.id}, event={self.event_id}, user={self.user_id}, status={self.status})>"
