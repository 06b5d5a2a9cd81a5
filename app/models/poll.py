from sqlalchemy import Column, String, DateTime, Boolean, Text, ForeignKey, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid

from app.core.db import Base
from app.utils.timeutils import utcnow, as_utc, isoformat


class Poll(Base):
    """Poll model for storing poll information."""

    __tablename__ = "polls"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    creator_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    allow_multiple_choices = Column(Boolean, default=False, nullable=False)
    allow_anonymous = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    # Relationships
    creator = relationship("Profile", back_populates="polls")
    options = relationship("PollOption", back_populates="poll", cascade="all, delete-orphan", order_by="PollOption.order_index")
    votes = relationship("Vote", back_populates="poll", cascade="all, delete-orphan")
    interests = relationship("PollInterest", back_populates="poll", cascade="all, delete-orphan")
    email_notifications = relationship("EmailNotification", back_populates="poll", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Poll(id={self.id}, title={self.title[:50]}...)>"

    @property
    def is_expired(self) -> bool:
        """Check if poll has expired."""
        if not self.expires_at:
            return False
        return as_utc(self.expires_at) < utcnow()

    @property
    def can_vote(self) -> bool:
        """Check if poll can accept votes."""
        return self.is_active and not self.is_expired

    @property
    def total_votes(self) -> int:
        return len(self.votes)

    def vote_counts(self) -> dict:
        """Votes per option id."""
        counts = {option.id: 0 for option in self.options}
        for vote in self.votes:
            counts[vote.option_id] = counts.get(vote.option_id, 0) + 1
        return counts

    def to_dict(self, include_options=True, include_creator=True):
        """Convert poll to dictionary."""
        total_votes = self.total_votes
        data = {
            "id": str(self.id),
            "title": self.title,
            "description": self.description,
            "creator_id": str(self.creator_id),
            "is_active": self.is_active,
            "allow_multiple_choices": self.allow_multiple_choices,
            "allow_anonymous": self.allow_anonymous,
            "expires_at": isoformat(self.expires_at),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            "total_votes": total_votes,
            "can_vote": self.can_vote,
            "is_expired": self.is_expired
        }

        if include_creator and self.creator:
            data["creator"] = {
                "id": str(self.creator.id),
                "username": self.creator.username
            }

        if include_options:
            counts = self.vote_counts()
            data["options"] = [
                option.to_dict(vote_count=counts.get(option.id, 0), total_votes=total_votes)
                for option in self.options
            ]

        return data
