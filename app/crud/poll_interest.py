from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import Optional, List
from uuid import UUID
import logging

from app.models.poll_interest import PollInterest
from app.models.profile import Profile

logger = logging.getLogger(__name__)


class PollInterestCRUD:
    """CRUD operations for PollInterest model."""

    def get(self, db: Session, user_id: UUID, poll_id: UUID) -> Optional[PollInterest]:
        """Get a profile's interest in a poll."""
        return db.query(PollInterest).filter(
            PollInterest.user_id == user_id,
            PollInterest.poll_id == poll_id
        ).first()

    def create(self, db: Session, user_id: UUID, poll_id: UUID, interest_type: str,
               email_notifications_enabled: bool = True) -> PollInterest:
        db_interest = PollInterest(
            user_id=user_id,
            poll_id=poll_id,
            interest_type=interest_type,
            email_notifications_enabled=email_notifications_enabled
        )
        db.add(db_interest)
        db.commit()
        db.refresh(db_interest)

        logger.info(f"Interest recorded: {user_id} -> {poll_id} ({interest_type})")
        return db_interest

    def save(self, db: Session, db_interest: PollInterest) -> PollInterest:
        db.commit()
        db.refresh(db_interest)
        return db_interest

    def delete(self, db: Session, db_interest: PollInterest) -> None:
        db.delete(db_interest)
        db.commit()

    def get_by_user(self, db: Session, user_id: UUID) -> List[PollInterest]:
        """A profile's interests with their polls, newest first."""
        return db.query(PollInterest).options(
            selectinload(PollInterest.poll)
        ).filter(
            PollInterest.user_id == user_id
        ).order_by(desc(PollInterest.created_at)).all()

    def get_by_poll(self, db: Session, poll_id: UUID) -> List[PollInterest]:
        return db.query(PollInterest).filter(PollInterest.poll_id == poll_id).all()

    def get_subscribers(self, db: Session, poll_id: UUID) -> List[PollInterest]:
        """Interests that should receive email for a poll, with the profile loaded."""
        return db.query(PollInterest).join(
            Profile, Profile.id == PollInterest.user_id
        ).options(
            selectinload(PollInterest.user)
        ).filter(
            PollInterest.poll_id == poll_id,
            PollInterest.email_notifications_enabled.is_(True),
            Profile.email_notifications_enabled.is_(True)
        ).all()


# Create instance
poll_interest_crud = PollInterestCRUD()
