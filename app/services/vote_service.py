from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from app.core.security import is_valid_uuid
from app.crud.poll import poll_crud
from app.crud.vote import vote_crud
from app.models.poll import Poll
from app.models.profile import Profile
from app.services.interest_service import interest_service
from app.services.settings_service import settings_service
from app.utils.exceptions import (
    AuthenticationError, DuplicateVoteError, InvalidOptionError, PollExpiredError,
    PollInactiveError, PollNotFoundError, ValidationError, VoteNotFoundError
)
from app.utils.logger import vote_logger

logger = logging.getLogger(__name__)

MAX_OPTIONS_PER_VOTE = 10


@dataclass
class VoterIdentity:
    """Who is voting: a signed-in profile, or an anonymous client IP."""

    user_id: Optional[UUID] = None
    ip_address: Optional[str] = None

    @classmethod
    def resolve(cls, current_user: Optional[Profile], client_ip: str) -> "VoterIdentity":
        if current_user is not None:
            return cls(user_id=current_user.id, ip_address=client_ip)
        return cls(ip_address=client_ip)

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def key(self) -> str:
        return str(self.user_id) if self.user_id else f"ip:{self.ip_address}"

    def lookup(self) -> Dict[str, Any]:
        """Keyword arguments selecting this identity's votes."""
        if self.user_id:
            return {"user_id": self.user_id}
        return {"ip_address": self.ip_address}


class VoteService:
    """Ballot validation and recording."""

    def parse_poll_id(self, poll_id: str) -> UUID:
        if not is_valid_uuid(poll_id):
            raise ValidationError("Invalid poll ID format", field="poll_id", error_code="invalid_poll_id")
        return UUID(poll_id)

    def parse_option_ids(self, option_ids: Any) -> List[UUID]:
        """
        Validate the submitted option ids.

        Returns:
            List[UUID]: Distinct ids in the order they were first submitted
        """
        if not option_ids or not isinstance(option_ids, list):
            raise ValidationError(
                "At least one option must be selected",
                field="option_ids",
                error_code="no_options_selected"
            )
        if len(option_ids) > MAX_OPTIONS_PER_VOTE:
            raise ValidationError(
                f"Maximum {MAX_OPTIONS_PER_VOTE} options allowed",
                field="option_ids",
                error_code="too_many_options"
            )
        for option_id in option_ids:
            if not is_valid_uuid(option_id):
                raise ValidationError(
                    "Invalid option ID format",
                    field="option_ids",
                    error_code="invalid_option_id"
                )

        unique_ids: List[UUID] = []
        for option_id in option_ids:
            parsed = UUID(option_id)
            if parsed not in unique_ids:
                unique_ids.append(parsed)
        return unique_ids

    def get_open_poll(self, db: Session, poll_id: UUID) -> Poll:
        """Load a poll that currently accepts votes."""
        poll = poll_crud.get(db, poll_id)
        if not poll:
            raise PollNotFoundError(str(poll_id))
        if not poll.is_active:
            raise PollInactiveError(str(poll_id))
        if poll.is_expired:
            raise PollExpiredError(str(poll_id))
        return poll

    def anonymous_allowed(self, db: Session, poll: Poll) -> bool:
        return poll.allow_anonymous and settings_service.get_general(db).allow_anonymous_voting

    def submit_vote(self, db: Session, poll_id: str, option_ids: Any, identity: VoterIdentity,
                    user_agent: Optional[str] = None) -> Dict[str, Any]:
        """
        Validate and record a ballot.

        Checks run in a fixed order and the first failure is raised: id
        formats, poll existence, active flag, expiry, single-choice rule,
        option membership, anonymous permission, then prior votes by the
        same identity.

        A single-choice poll replaces the identity's previous vote. A
        multi-choice poll adds the new options but refuses options the
        identity already chose.

        Args:
            db: Database session
            poll_id: Poll id as received in the URL
            option_ids: Raw ``option_ids`` from the request body
            identity: Voter identity
            user_agent: Sanitized User-Agent header

        Returns:
            dict: ``poll_id``, ``voted_options``, ``user_votes`` and ``total_votes``
        """
        poll_uuid = self.parse_poll_id(poll_id)
        try:
            selected = self.parse_option_ids(option_ids)
            poll = self.get_open_poll(db, poll_uuid)

            if not poll.allow_multiple_choices and len(selected) > 1:
                raise ValidationError(
                    "This poll only allows one choice",
                    field="option_ids",
                    error_code="single_choice_only"
                )

            valid_options = poll_crud.get_options(db, poll.id, selected)
            if len(valid_options) != len(selected):
                raise InvalidOptionError(str(poll.id))

            if identity.is_anonymous and not self.anonymous_allowed(db, poll):
                raise AuthenticationError("Login required to vote on this poll")

            existing = vote_crud.get_identity_votes(db, poll.id, **identity.lookup())
            replace = []
            if existing:
                if poll.allow_multiple_choices:
                    already_chosen = {vote.option_id for vote in existing}
                    if already_chosen.intersection(selected):
                        raise DuplicateVoteError(str(poll.id))
                else:
                    replace = existing
        except (ValidationError, AuthenticationError, DuplicateVoteError,
                PollNotFoundError, PollInactiveError, PollExpiredError) as e:
            vote_logger.log_vote_rejected(str(poll_uuid), e.error_code, identity.key)
            raise

        try:
            vote_crud.create_many(
                db,
                poll_id=poll.id,
                option_ids=selected,
                user_id=identity.user_id,
                ip_address=identity.ip_address,
                user_agent=user_agent,
                replace=replace
            )
        except IntegrityError:
            db.rollback()
            vote_logger.log_vote_rejected(str(poll.id), "already_voted", identity.key)
            raise DuplicateVoteError(str(poll.id), message="You have already voted on this poll")

        vote_logger.log_vote_accepted(
            str(poll.id), [str(o) for o in selected], identity.key,
            anonymous=identity.is_anonymous, replaced=len(replace)
        )

        if identity.user_id:
            interest_service.track_voter_interest(db, identity.user_id, poll.id)

        return {
            "poll_id": str(poll.id),
            "voted_options": [str(o) for o in selected],
            "user_votes": self.get_user_votes(db, poll.id, identity),
            "total_votes": vote_crud.count(db, poll_id=poll.id)
        }

    def remove_vote(self, db: Session, poll_id: str, option_id: str, identity: VoterIdentity) -> Dict[str, Any]:
        """Withdraw the identity's vote for one option of an open poll."""
        poll_uuid = self.parse_poll_id(poll_id)
        if not is_valid_uuid(option_id):
            raise ValidationError("Invalid option ID format", field="option_id", error_code="invalid_option_id")
        poll = self.get_open_poll(db, poll_uuid)

        removed = vote_crud.delete_identity_vote(db, poll.id, UUID(option_id), **identity.lookup())
        if not removed:
            raise VoteNotFoundError(str(poll.id))

        return {
            "poll_id": str(poll.id),
            "removed_option": option_id,
            "user_votes": self.get_user_votes(db, poll.id, identity),
            "total_votes": vote_crud.count(db, poll_id=poll.id)
        }

    def get_user_votes(self, db: Session, poll_id: UUID, identity: VoterIdentity) -> List[str]:
        """Option ids the identity currently holds on the poll."""
        return [str(vote.option_id) for vote in vote_crud.get_identity_votes(db, poll_id, **identity.lookup())]

    def check_can_vote(self, db: Session, poll_id: UUID, identity: VoterIdentity) -> Dict[str, Any]:
        """
        Summarize whether the identity may vote right now.

        Returns:
            dict: ``can_vote``, ``reason`` and ``has_voted``
        """
        poll = poll_crud.get_with_details(db, poll_id)
        if not poll:
            return {"can_vote": False, "reason": "Poll not found", "has_voted": False}

        votes = vote_crud.get_identity_votes(db, poll.id, **identity.lookup())
        has_voted = bool(votes)

        if not poll.is_active:
            return {"can_vote": False, "reason": "Poll is not active", "has_voted": has_voted}
        if poll.is_expired:
            return {"can_vote": False, "reason": "Poll has expired", "has_voted": has_voted}
        if identity.is_anonymous and not self.anonymous_allowed(db, poll):
            return {"can_vote": False, "reason": "Login required to vote on this poll", "has_voted": has_voted}

        if not has_voted:
            return {"can_vote": True, "reason": None, "has_voted": False}
        if not poll.allow_multiple_choices:
            return {"can_vote": True, "reason": "Can change vote", "has_voted": True}
        if len({vote.option_id for vote in votes}) >= len(poll.options):
            return {"can_vote": False, "reason": "Already voted", "has_voted": True}
        return {"can_vote": True, "reason": "Can vote for additional options", "has_voted": True}


vote_service = VoteService()
