from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from app.core.db import Base
from app.utils.timeutils import utcnow, isoformat

NOTIFICATION_EXPIRING_24H = "expiring_24h"
NOTIFICATION_EXPIRING_2H = "expiring_2h"
NOTIFICATION_EXPIRED = "expired"


class EmailNotification(Base):
    """Record of an expiry email already delivered, one per type per user and poll."""

    __tablename__ = "email_notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    poll_id = Column(Uuid(as_uuid=True), ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True)
    notification_type = Column(String(20), nullable=False)
    email_address = Column(String(255), nullable=False)
    provider_message_id = Column(String(255), nullable=True)
    sent_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user = relationship("Profile", back_populates="email_notifications")
    poll = relationship("Poll", back_populates="email_notifications")

    __table_args__ = (
        UniqueConstraint('user_id', 'poll_id', 'notification_type', name='unique_user_poll_notification'),
    )

    def __repr__(self):
        return f"<EmailNotification(user_id={self.user_id}, poll_id={self.poll_id}, type={self.notification_type})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "poll_id": str(self.poll_id),
            "notification_type": self.notification_type,
            "email_address": self.email_address,
            "provider_message_id": self.provider_message_id,
            "sent_at": isoformat(self.sent_at)
        }
