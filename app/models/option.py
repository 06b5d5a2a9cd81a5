from sqlalchemy import Column, String, Integer, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
import uuid

from app.core.db import Base


class PollOption(Base):
    """Poll option model."""

    __tablename__ = "poll_options"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    poll_id = Column(Uuid(as_uuid=True), ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(200), nullable=False)
    order_index = Column(Integer, nullable=False, default=0)

    # Relationships
    poll = relationship("Poll", back_populates="options")
    votes = relationship("Vote", back_populates="option", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('poll_id', 'order_index', name='unique_poll_option_order'),
    )

    def __repr__(self):
        return f"<PollOption(id={self.id}, text={self.text[:30]}...)>"

    def to_dict(self, vote_count: int = 0, total_votes: int = 0):
        """Convert option to dictionary."""
        percentage = (vote_count / total_votes) * 100 if total_votes > 0 else 0

        return {
            "id": str(self.id),
            "poll_id": str(self.poll_id),
            "text": self.text,
            "order_index": self.order_index,
            "vote_count": vote_count,
            "percentage": round(percentage, 2)
        }
