from sqlalchemy.orm import Session, selectinload
from sqlalchemy import and_, or_, desc
from typing import Optional, List, Dict, Any
from datetime import timedelta
from uuid import UUID
import logging

from app.models.poll import Poll
from app.models.option import PollOption
from app.models.vote import Vote
from app.schemas.poll import PollCreate, PollUpdate
from app.utils.exceptions import CustomException
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class PollCRUD:
    """CRUD operations for Poll and PollOption models."""

    def create(self, db: Session, poll_data: PollCreate, creator_id: UUID) -> Poll:
        """
        Create a new poll and its options.

        The poll row is committed first; if the options cannot be stored the
        poll is deleted again so no option-less poll is left behind.

        Args:
            db: Database session
            poll_data: Poll creation data
            creator_id: Profile creating the poll

        Returns:
            Poll: Created poll

        Raises:
            CustomException: If the options could not be stored
        """
        db_poll = Poll(
            title=poll_data.title,
            description=poll_data.description,
            creator_id=creator_id,
            is_active=True,
            allow_multiple_choices=poll_data.allow_multiple_choices,
            allow_anonymous=poll_data.allow_anonymous,
            expires_at=poll_data.expires_at
        )

        db.add(db_poll)
        db.commit()
        db.refresh(db_poll)

        try:
            self.add_options(db, db_poll.id, poll_data.options)
        except Exception as e:
            logger.error(f"Poll options insert failed for {db_poll.id}, removing poll: {e}")
            db.rollback()
            self._discard(db, db_poll.id)
            raise CustomException(
                message="Failed to create poll options",
                status_code=500,
                error_code="poll_options_failed"
            )

        db.refresh(db_poll)
        logger.info(f"Poll created: {db_poll.title} (ID: {db_poll.id})")
        return db_poll

    def add_options(self, db: Session, poll_id: UUID, texts: List[str]) -> List[PollOption]:
        """Insert options in display order."""
        options = [
            PollOption(poll_id=poll_id, text=text, order_index=index)
            for index, text in enumerate(texts)
        ]
        db.add_all(options)
        db.commit()
        return options

    def _discard(self, db: Session, poll_id: UUID) -> None:
        try:
            db.query(Poll).filter(Poll.id == poll_id).delete(synchronize_session=False)
            db.commit()
        except Exception as e:
            # Nothing left to do but report it
            logger.error(f"Failed to remove incomplete poll {poll_id}: {e}")
            db.rollback()

    def get(self, db: Session, poll_id: UUID) -> Optional[Poll]:
        """Get poll by ID."""
        return db.query(Poll).filter(Poll.id == poll_id).first()

    def get_with_details(self, db: Session, poll_id: UUID) -> Optional[Poll]:
        """Get poll with options, creator and votes loaded."""
        return db.query(Poll).options(
            selectinload(Poll.options),
            selectinload(Poll.creator),
            selectinload(Poll.votes)
        ).filter(Poll.id == poll_id).first()

    def get_options(self, db: Session, poll_id: UUID, option_ids: List[UUID]) -> List[PollOption]:
        """Options among ``option_ids`` that belong to the poll."""
        if not option_ids:
            return []
        return db.query(PollOption).filter(
            and_(
                PollOption.poll_id == poll_id,
                PollOption.id.in_(option_ids)
            )
        ).all()

    def _detailed(self, db: Session):
        return db.query(Poll).options(
            selectinload(Poll.options),
            selectinload(Poll.creator),
            selectinload(Poll.votes)
        )

    def get_active(self, db: Session, skip: int = 0, limit: int = 20) -> List[Poll]:
        """Active polls, newest first."""
        return self._detailed(db).filter(
            Poll.is_active.is_(True)
        ).order_by(desc(Poll.created_at)).offset(skip).limit(limit).all()

    def get_all(self, db: Session, skip: int = 0, limit: int = 50,
                search: Optional[str] = None) -> List[Poll]:
        """Every poll regardless of status, for moderation."""
        query = self._detailed(db)
        if search:
            query = query.filter(
                or_(
                    Poll.title.ilike(f"%{search}%"),
                    Poll.description.ilike(f"%{search}%")
                )
            )
        return query.order_by(desc(Poll.created_at)).offset(skip).limit(limit).all()

    def get_by_creator(self, db: Session, creator_id: UUID, skip: int = 0, limit: int = 50) -> List[Poll]:
        """Polls created by a profile."""
        return self._detailed(db).filter(
            Poll.creator_id == creator_id
        ).order_by(desc(Poll.created_at)).offset(skip).limit(limit).all()

    def get_recent(self, db: Session, limit: int = 5) -> List[Poll]:
        return self._detailed(db).order_by(desc(Poll.created_at)).limit(limit).all()

    def get_expiring(self, db: Session, within: timedelta = timedelta(hours=24)) -> List[Poll]:
        """Active polls whose expiry falls before ``now + within`` (already expired included)."""
        return db.query(Poll).filter(
            Poll.is_active.is_(True),
            Poll.expires_at.isnot(None),
            Poll.expires_at <= utcnow() + within
        ).all()

    def count(self, db: Session, active_only: bool = False) -> int:
        query = db.query(Poll)
        if active_only:
            query = query.filter(Poll.is_active.is_(True))
        return query.count()

    def count_by_creator(self, db: Session, creator_id: UUID) -> int:
        return db.query(Poll).filter(Poll.creator_id == creator_id).count()

    def update(self, db: Session, db_poll: Poll, poll_data: PollUpdate) -> Poll:
        """
        Apply the fields set on ``poll_data`` to a poll.

        Args:
            db: Database session
            db_poll: Poll to update
            poll_data: Update data

        Returns:
            Poll: Updated poll
        """
        for field, value in poll_data.model_dump(exclude_unset=True).items():
            setattr(db_poll, field, value)

        db.commit()
        db.refresh(db_poll)

        logger.info(f"Poll updated: {db_poll.title} (ID: {db_poll.id})")
        return db_poll

    def set_status(self, db: Session, db_poll: Poll, is_active: bool) -> Poll:
        db_poll.is_active = is_active
        db.commit()
        db.refresh(db_poll)

        logger.info(f"Poll {'activated' if is_active else 'deactivated'}: {db_poll.id}")
        return db_poll

    def delete(self, db: Session, db_poll: Poll) -> Dict[str, Any]:
        """
        Delete a poll; options, votes and interests go with it.

        Returns:
            dict: ``deleted_poll_id`` and whether the poll had any votes
        """
        poll_id = db_poll.id
        had_votes = db.query(Vote).filter(Vote.poll_id == poll_id).count() > 0

        db.delete(db_poll)
        db.commit()

        logger.info(f"Poll deleted: {poll_id} (had votes: {had_votes})")
        return {"deleted_poll_id": str(poll_id), "had_votes": had_votes}


# Create instance
poll_crud = PollCRUD()
