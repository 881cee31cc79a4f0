"""
Payment model linked to an inscription for non-free events.

`event_id` and `user_id` are denormalized from the inscription for reporting
(revenue per event, payments per user). `metadata_` holds the processor
handshake (e.g. Stripe client secret).
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, JSON, ForeignKey, Index, CheckConstraint, text,
)
from sqlalchemy.orm import relationship

from onelastevent.db.base import Base, TimestampMixin
from onelastevent.domain.status import PaymentStatus


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    inscription_id = Column(Integer, ForeignKey("inscriptions.id"), nullable=True, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    provider = Column(String(50), nullable=False, default="mock")
    provider_payment_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, nullable=True)

    user = relationship("User", back_populates="payments")
    inscription = relationship("Inscription", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'PAID', 'FAILED', 'REFUNDED')", name="check_payment_status"
        ),
        Index("ix_payments_provider_payment_id", "provider_payment_id"),
        Index("ix_payments_event_status", "event_id", "status"),
        # At most one PENDING or PAID payment per inscription
        Index(
            "uq_payments_active_inscription",
            "inscription_id",
            unique=True,
            postgresql_where=text("status IN ('PENDING', 'PAID')"),
            sqlite_where=text("status IN ('PENDING', 'PAID')"),
        ),
    )

    @property
    def client_secret(self) -> str | None:
        return (self.metadata_ or {}).get("client_secret")

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, inscription={self.inscription_id}, status={self.status}, amount={self.amount})>"
