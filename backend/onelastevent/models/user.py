"""
User model with secure password storage and a role used for authorization.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from onelastevent.db.base import Base, TimestampMixin
from onelastevent.domain.status import UserRole


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    is_active = Column(Boolean, default=True, nullable=False)

    events = relationship("Event", back_populates="organizer")
    inscriptions = relationship("Inscription", back_populates="user")
    payments = relationship("Payment", back_populates="user")

    __table_args__ = (
        CheckConstraint("role IN ('USER', 'ORGANIZER', 'ADMIN')", name="check_user_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
