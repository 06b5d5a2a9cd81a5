from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from app.core.db import Base
from app.utils.timeutils import utcnow, isoformat


class Vote(Base):
    """
    A single ballot row: one per (voter, option).

    Authenticated votes carry ``user_id``; anonymous ones carry the client
    ``ip_address`` instead. Never both.
    """

    __tablename__ = "votes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    poll_id = Column(Uuid(as_uuid=True), ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True)
    option_id = Column(Uuid(as_uuid=True), ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True, index=True)
    ip_address = Column(String(45), nullable=True, index=True)
    user_agent = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    # Relationships
    poll = relationship("Poll", back_populates="votes")
    option = relationship("PollOption", back_populates="votes")
    user = relationship("Profile", back_populates="votes")

    __table_args__ = (
        UniqueConstraint('poll_id', 'option_id', 'user_id', name='unique_user_option_vote'),
        UniqueConstraint('poll_id', 'option_id', 'ip_address', name='unique_ip_option_vote'),
        CheckConstraint(
            '(user_id IS NULL) <> (ip_address IS NULL)',
            name='vote_single_identity'
        ),
    )

    def __repr__(self):
        return f"<Vote(id={self.id}, poll_id={self.poll_id}, option_id={self.option_id})>"

    def to_dict(self):
        """Convert vote to dictionary."""
        return {
            "id": str(self.id),
            "poll_id": str(self.poll_id),
            "option_id": str(self.option_id),
            "user_id": str(self.user_id) if self.user_id else None,
            "is_anonymous": self.is_anonymous,
            "created_at": isoformat(self.created_at),
        }

    @property
    def voter_identifier(self) -> str:
        """Get voter identifier (user_id or ip_address)."""
        return str(self.user_id) if self.user_id else self.ip_address

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None
