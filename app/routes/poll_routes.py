from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.core.auth import get_current_user, require_user
from app.core.db import get_db
from app.core.security import extract_client_ip
from app.crud.poll import poll_crud
from app.models.poll import Poll
from app.models.profile import Profile
from app.schemas.poll import PollCreate, PollUpdate
from app.services.interest_service import interest_service
from app.services.settings_service import settings_service
from app.services.vote_service import vote_service, VoterIdentity
from app.utils.exceptions import (
    CustomException, AuthorizationError, PollNotFoundError, ValidationError
)
from app.utils.response_helper import (
    success_response, error_response, exception_response, paginated_response,
    created_response, updated_response, deleted_response
)

logger = logging.getLogger(__name__)

router = APIRouter()


def load_poll(db: Session, poll_id: str) -> Poll:
    """Parse the URL id and load the poll with its options and votes."""
    poll = poll_crud.get_with_details(db, vote_service.parse_poll_id(poll_id))
    if not poll:
        raise PollNotFoundError(poll_id)
    return poll


def ensure_creator(poll: Poll, current_user: Profile, action: str) -> None:
    if poll.creator_id != current_user.id:
        raise AuthorizationError(f"Only the poll creator can {action} this poll")


@router.post("/", response_model=dict)
async def create_poll(
    poll_data: PollCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_user)
):
    """Create a poll with its options. The creator is subscribed to expiry emails."""
    try:
        general = settings_service.get_general(db)
        if general.max_polls_per_user and \
                poll_crud.count_by_creator(db, current_user.id) >= general.max_polls_per_user:
            raise ValidationError(
                f"You can create at most {general.max_polls_per_user} polls",
                error_code="poll_limit_reached"
            )

        poll = poll_crud.create(db, poll_data, creator_id=current_user.id)
        interest_service.track_creator_interest(db, current_user.id, poll.id)

        return created_response(data=poll.to_dict(), message="Poll created successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error creating poll: {e}")
        return error_response(message="Failed to create poll", status_code=500, error="internal_error")


@router.get("/", response_model=dict)
async def get_polls(
    skip: int = Query(0, ge=0, description="Number of polls to skip"),
    limit: int = Query(20, ge=1, le=100, description="Number of polls to return"),
    db: Session = Depends(get_db)
):
    """Active polls, newest first."""
    try:
        polls = poll_crud.get_active(db, skip=skip, limit=limit)
        total = poll_crud.count(db, active_only=True)

        return paginated_response(
            data=[poll.to_dict() for poll in polls],
            page=(skip // limit) + 1,
            per_page=limit,
            total=total,
            message="Polls retrieved successfully"
        )

    except Exception as e:
        logger.error(f"Error getting polls: {e}")
        return error_response(message="Failed to retrieve polls", status_code=500, error="internal_error")


@router.get("/{poll_id}", response_model=dict)
async def get_poll(
    poll_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[Profile] = Depends(get_current_user)
):
    """
    Poll with per-option counts and the caller's current votes.

    Inactive polls are only visible to their creator and to admins.
    """
    try:
        poll = load_poll(db, poll_id)

        if not poll.is_active:
            is_owner = current_user is not None and current_user.id == poll.creator_id
            if not (is_owner or (current_user is not None and current_user.is_admin)):
                raise AuthorizationError("Poll is not accessible")

        identity = VoterIdentity.resolve(current_user, extract_client_ip(request))
        data = poll.to_dict()
        data["user_votes"] = vote_service.get_user_votes(db, poll.id, identity)

        return success_response(data=data, message="Poll retrieved successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error getting poll {poll_id}: {e}")
        return error_response(message="Failed to retrieve poll", status_code=500, error="internal_error")


@router.put("/{poll_id}", response_model=dict)
async def update_poll(
    poll_id: str,
    poll_data: PollUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_user)
):
    try:
        poll = load_poll(db, poll_id)
        ensure_creator(poll, current_user, "update")

        poll = poll_crud.update(db, poll, poll_data)
        return updated_response(data=poll.to_dict(), message="Poll updated successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error updating poll {poll_id}: {e}")
        return error_response(message="Failed to update poll", status_code=500, error="internal_error")


@router.delete("/{poll_id}", response_model=dict)
async def delete_poll(
    poll_id: str,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_user)
):
    """Delete a poll with its options, votes and interests."""
    try:
        poll = load_poll(db, poll_id)
        ensure_creator(poll, current_user, "delete")

        result = poll_crud.delete(db, poll)
        return deleted_response(data=result, message="Poll deleted successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error deleting poll {poll_id}: {e}")
        return error_response(message="Failed to delete poll", status_code=500, error="internal_error")
