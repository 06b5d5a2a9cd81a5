from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.core.auth import get_current_user
from app.core.db import get_db
from app.core.rate_limit import vote_rate_limiter
from app.core.security import extract_client_ip, sanitize_user_agent
from app.crud.poll import poll_crud
from app.models.profile import Profile
from app.schemas.vote import VoteSubmit, VoteResult, VoteEligibility
from app.services.vote_service import vote_service, VoterIdentity
from app.utils.exceptions import CustomException, PollNotFoundError
from app.utils.response_helper import (
    success_response, error_response, exception_response, deleted_response
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_voter_identity(
    request: Request,
    current_user: Optional[Profile] = Depends(get_current_user)
) -> VoterIdentity:
    return VoterIdentity.resolve(current_user, extract_client_ip(request))


@router.post("/{poll_id}/vote", response_model=dict)
async def submit_vote(
    poll_id: str,
    vote_data: VoteSubmit,
    request: Request,
    db: Session = Depends(get_db),
    identity: VoterIdentity = Depends(get_voter_identity)
):
    """
    Cast a ballot for one or more options.

    Signed-in voters are identified by profile, everyone else by client IP.
    """
    try:
        await vote_rate_limiter.hit(identity.key)

        result = vote_service.submit_vote(
            db,
            poll_id=poll_id,
            option_ids=vote_data.option_ids,
            identity=identity,
            user_agent=sanitize_user_agent(request.headers.get("user-agent"))
        )
        return success_response(data=VoteResult(**result).model_dump(), message="Vote recorded successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error submitting vote on poll {poll_id}: {e}")
        return error_response(message="Failed to submit vote", status_code=500, error="internal_error")


@router.delete("/{poll_id}/vote/{option_id}", response_model=dict)
async def remove_vote(
    poll_id: str,
    option_id: str,
    db: Session = Depends(get_db),
    identity: VoterIdentity = Depends(get_voter_identity)
):
    try:
        result = vote_service.remove_vote(db, poll_id, option_id, identity)
        return deleted_response(data=result, message="Vote removed successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error removing vote on poll {poll_id}: {e}")
        return error_response(message="Failed to remove vote", status_code=500, error="internal_error")


@router.get("/{poll_id}/my-votes", response_model=dict)
async def get_my_votes(
    poll_id: str,
    db: Session = Depends(get_db),
    identity: VoterIdentity = Depends(get_voter_identity)
):
    """Option ids the caller currently holds on the poll."""
    try:
        poll_uuid = vote_service.parse_poll_id(poll_id)
        if not poll_crud.get(db, poll_uuid):
            raise PollNotFoundError(poll_id)

        return success_response(
            data={"poll_id": poll_id, "user_votes": vote_service.get_user_votes(db, poll_uuid, identity)},
            message="Votes retrieved successfully"
        )

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error getting votes on poll {poll_id}: {e}")
        return error_response(message="Failed to retrieve votes", status_code=500, error="internal_error")


@router.get("/{poll_id}/can-vote", response_model=dict)
async def can_vote(
    poll_id: str,
    db: Session = Depends(get_db),
    identity: VoterIdentity = Depends(get_voter_identity)
):
    try:
        result = vote_service.check_can_vote(db, vote_service.parse_poll_id(poll_id), identity)
        return success_response(data=VoteEligibility(**result).model_dump(), message="Eligibility checked")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error checking eligibility on poll {poll_id}: {e}")
        return error_response(message="Failed to check eligibility", status_code=500, error="internal_error")
