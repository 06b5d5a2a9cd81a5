from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from app.core.db import Base
from app.utils.timeutils import utcnow, isoformat

INTEREST_CREATOR = "creator"
INTEREST_VOTER = "voter"
INTEREST_FOLLOWER = "follower"
INTEREST_TYPES = (INTEREST_CREATOR, INTEREST_VOTER, INTEREST_FOLLOWER)


class PollInterest(Base):
    """Subscription of a profile to a poll's expiry notifications."""

    __tablename__ = "poll_interests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    poll_id = Column(Uuid(as_uuid=True), ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True)
    interest_type = Column(String(20), nullable=False, default=INTEREST_VOTER)
    email_notifications_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("Profile", back_populates="interests")
    poll = relationship("Poll", back_populates="interests")

    __table_args__ = (
        UniqueConstraint('user_id', 'poll_id', name='unique_user_poll_interest'),
    )

    def __repr__(self):
        return f"<PollInterest(user_id={self.user_id}, poll_id={self.poll_id}, type={self.interest_type})>"

    def to_dict(self, include_poll=False):
        data = {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "poll_id": str(self.poll_id),
            "interest_type": self.interest_type,
            "email_notifications_enabled": self.email_notifications_enabled,
            "created_at": isoformat(self.created_at)
        }
        if include_poll and self.poll:
            data["poll"] = {
                "id": str(self.poll.id),
                "title": self.poll.title,
                "is_active": self.poll.is_active,
                "expires_at": isoformat(self.poll.expires_at)
            }
        return data
