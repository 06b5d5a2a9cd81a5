from sqlalchemy.orm import Session
from typing import Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError

from app.crud.poll_interest import poll_interest_crud
from app.models.poll_interest import (
    PollInterest, INTEREST_CREATOR, INTEREST_VOTER, INTEREST_FOLLOWER
)
from app.utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class InterestService:
    """Tracks which profiles want expiry emails for which polls."""

    def track_creator_interest(self, db: Session, user_id: UUID, poll_id: UUID) -> PollInterest:
        """A poll's creator is always subscribed as ``creator``."""
        existing = poll_interest_crud.get(db, user_id, poll_id)
        if existing:
            existing.interest_type = INTEREST_CREATOR
            existing.email_notifications_enabled = True
            return poll_interest_crud.save(db, existing)
        return poll_interest_crud.create(db, user_id, poll_id, INTEREST_CREATOR)

    def track_voter_interest(self, db: Session, user_id: UUID, poll_id: UUID) -> Optional[PollInterest]:
        """
        Subscribe a voter unless they already have an interest in the poll.

        A concurrent insert of the same interest resolves to the stored row.
        """
        existing = poll_interest_crud.get(db, user_id, poll_id)
        if existing:
            return existing
        try:
            return poll_interest_crud.create(db, user_id, poll_id, INTEREST_VOTER)
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Voter interest not recorded for {user_id} on {poll_id}: {e}")
            return poll_interest_crud.get(db, user_id, poll_id)

    def follow_poll(self, db: Session, user_id: UUID, poll_id: UUID) -> PollInterest:
        """Follow a poll, or re-enable email on an existing interest."""
        existing = poll_interest_crud.get(db, user_id, poll_id)
        if existing:
            existing.email_notifications_enabled = True
            return poll_interest_crud.save(db, existing)
        return poll_interest_crud.create(db, user_id, poll_id, INTEREST_FOLLOWER)

    def unfollow_poll(self, db: Session, user_id: UUID, poll_id: UUID) -> Optional[PollInterest]:
        """
        Stop following a poll.

        Follower rows are removed. Creator and voter rows are kept, with
        email switched off, so the relationship itself is not lost.

        Returns:
            Optional[PollInterest]: The kept interest, or None if it was deleted
        """
        existing = poll_interest_crud.get(db, user_id, poll_id)
        if not existing:
            raise NotFoundError(resource="Poll interest", identifier=str(poll_id))

        if existing.interest_type == INTEREST_FOLLOWER:
            poll_interest_crud.delete(db, existing)
            return None

        existing.email_notifications_enabled = False
        return poll_interest_crud.save(db, existing)

    def get_user_interests(self, db: Session, user_id: UUID) -> List[PollInterest]:
        return poll_interest_crud.get_by_user(db, user_id)

    def update_notification_preference(self, db: Session, user_id: UUID, poll_id: UUID,
                                       enabled: bool) -> PollInterest:
        existing = poll_interest_crud.get(db, user_id, poll_id)
        if not existing:
            raise NotFoundError(resource="Poll interest", identifier=str(poll_id))
        existing.email_notifications_enabled = enabled
        return poll_interest_crud.save(db, existing)

    def get_poll_interest_stats(self, db: Session, poll_id: UUID) -> Dict[str, int]:
        interests = poll_interest_crud.get_by_poll(db, poll_id)
        return {
            "total_interested": len(interests),
            "creators": sum(1 for i in interests if i.interest_type == INTEREST_CREATOR),
            "voters": sum(1 for i in interests if i.interest_type == INTEREST_VOTER),
            "followers": sum(1 for i in interests if i.interest_type == INTEREST_FOLLOWER),
            "email_subscribers": sum(1 for i in interests if i.email_notifications_enabled)
        }


interest_service = InterestService()
