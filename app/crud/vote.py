from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import Optional, List
from datetime import datetime
from uuid import UUID
import logging

from app.models.vote import Vote

logger = logging.getLogger(__name__)


class VoteCRUD:
    """CRUD operations for Vote model."""

    def _by_identity(self, db: Session, poll_id: UUID, user_id: Optional[UUID] = None,
                     ip_address: Optional[str] = None):
        query = db.query(Vote).filter(Vote.poll_id == poll_id)
        if user_id:
            return query.filter(Vote.user_id == user_id)
        if ip_address:
            # Anonymous ballots only; a signed-in voter on the same IP is a different identity
            return query.filter(Vote.user_id.is_(None), Vote.ip_address == ip_address)
        return None

    def get_identity_votes(self, db: Session, poll_id: UUID, user_id: Optional[UUID] = None,
                           ip_address: Optional[str] = None) -> List[Vote]:
        """Votes a single identity holds on a poll."""
        query = self._by_identity(db, poll_id, user_id, ip_address)
        return query.all() if query is not None else []

    def create_many(self, db: Session, poll_id: UUID, option_ids: List[UUID],
                    user_id: Optional[UUID] = None, ip_address: Optional[str] = None,
                    user_agent: Optional[str] = None, replace: Optional[List[Vote]] = None) -> List[Vote]:
        """
        Insert one vote row per option, optionally replacing earlier votes.

        Everything happens in one commit, so a failed insert leaves the
        replaced votes in place.

        Args:
            db: Database session
            poll_id: Poll being voted on
            option_ids: Options chosen
            user_id: Voter profile, None for anonymous ballots
            ip_address: Voter IP, only stored for anonymous ballots
            user_agent: Sanitized User-Agent header
            replace: Existing votes to delete in the same transaction

        Returns:
            List[Vote]: Created votes
        """
        for old_vote in replace or []:
            db.delete(old_vote)
        if replace:
            db.flush()

        votes = [
            Vote(
                poll_id=poll_id,
                option_id=option_id,
                user_id=user_id,
                ip_address=None if user_id else ip_address,
                user_agent=user_agent
            )
            for option_id in option_ids
        ]
        db.add_all(votes)
        db.commit()

        logger.info(f"Votes created: {len(votes)} for poll {poll_id}")
        return votes

    def delete_identity_vote(self, db: Session, poll_id: UUID, option_id: UUID,
                             user_id: Optional[UUID] = None, ip_address: Optional[str] = None) -> bool:
        """
        Delete one identity's vote for an option.

        Returns:
            bool: True if deleted, False if there was no such vote
        """
        query = self._by_identity(db, poll_id, user_id, ip_address)
        if query is None:
            return False

        vote = query.filter(Vote.option_id == option_id).first()
        if not vote:
            return False

        db.delete(vote)
        db.commit()

        logger.info(f"Vote removed for poll {poll_id}, option {option_id}")
        return True

    def count(self, db: Session, poll_id: Optional[UUID] = None) -> int:
        """Count votes, optionally for one poll."""
        query = db.query(Vote)
        if poll_id:
            query = query.filter(Vote.poll_id == poll_id)
        return query.count()

    def get_recent(self, db: Session, limit: int = 10, since: Optional[datetime] = None) -> List[Vote]:
        """Latest votes with their poll, option and voter loaded."""
        query = db.query(Vote).options(
            selectinload(Vote.poll),
            selectinload(Vote.option),
            selectinload(Vote.user)
        )
        if since is not None:
            query = query.filter(Vote.created_at >= since)
        return query.order_by(desc(Vote.created_at)).limit(limit).all()


# Create instance
vote_crud = VoteCRUD()
