from sqlalchemy import Column, String, DateTime, Boolean, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from app.core.db import Base
from app.utils.timeutils import utcnow, isoformat

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_USER)

NOTIFICATION_FREQUENCIES = ("instant", "daily", "weekly")


class Profile(Base):
    """Registered account. Admins moderate users, polls and settings."""

    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    username = Column(String(50), nullable=True, index=True)
    full_name = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=True)
    role = Column(String(20), default=ROLE_USER, nullable=False)
    email_notifications_enabled = Column(Boolean, default=True, nullable=False)
    notification_frequency = Column(String(20), default="instant", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    # Relationships
    polls = relationship("Poll", back_populates="creator", cascade="all, delete-orphan")
    votes = relationship("Vote", back_populates="user", cascade="all, delete-orphan")
    interests = relationship("PollInterest", back_populates="user", cascade="all, delete-orphan")
    email_notifications = relationship("EmailNotification", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Profile(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or "User"

    def to_dict(self, include_email=True):
        """Convert profile to dictionary."""
        data = {
            "id": str(self.id),
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "email_notifications_enabled": self.email_notifications_enabled,
            "notification_frequency": self.notification_frequency,
            "created_at": isoformat(self.created_at),
        }
        if include_email:
            data["email"] = self.email
        return data
