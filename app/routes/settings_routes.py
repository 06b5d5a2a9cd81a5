from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from app.core.auth import require_user
from app.core.db import get_db
from app.crud.profile import profile_crud
from app.models.profile import Profile
from app.routes.poll_routes import load_poll
from app.schemas.poll_interest import InterestPreferenceUpdate
from app.schemas.profile import NotificationSettingsUpdate
from app.services.interest_service import interest_service
from app.utils.exceptions import CustomException
from app.utils.response_helper import (
    success_response, error_response, exception_response, updated_response, deleted_response
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _notification_settings(profile: Profile):
    return {
        "email_notifications_enabled": profile.email_notifications_enabled,
        "notification_frequency": profile.notification_frequency
    }


@router.get("/notifications", response_model=dict)
async def get_notification_settings(current_user: Profile = Depends(require_user)):
    return success_response(
        data=_notification_settings(current_user),
        message="Notification settings retrieved successfully"
    )


@router.put("/notifications", response_model=dict)
async def update_notification_settings(
    settings_data: NotificationSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_user)
):
    """Switch expiry emails on or off for the caller's whole account."""
    try:
        profile = profile_crud.update_notification_settings(
            db,
            current_user,
            email_notifications_enabled=settings_data.email_notifications_enabled,
            notification_frequency=settings_data.notification_frequency
        )
        return updated_response(
            data=_notification_settings(profile),
            message="Notification settings updated successfully"
        )
    except Exception as e:
        logger.error(f"Error updating notification settings for {current_user.id}: {e}")
        return error_response(
            message="Failed to update notification settings", status_code=500, error="internal_error"
        )


@router.get("/interests", response_model=dict)
async def get_interests(db: Session = Depends(get_db), current_user: Profile = Depends(require_user)):
    interests = interest_service.get_user_interests(db, current_user.id)
    return success_response(
        data=[interest.to_dict(include_poll=True) for interest in interests],
        message="Interests retrieved successfully"
    )


@router.post("/interests/{poll_id}", response_model=dict)
async def follow_poll(
    poll_id: str,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_user)
):
    try:
        poll = load_poll(db, poll_id)
        interest = interest_service.follow_poll(db, current_user.id, poll.id)
        return success_response(data=interest.to_dict(), message="Now following poll")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error following poll {poll_id}: {e}")
        return error_response(message="Failed to follow poll", status_code=500, error="internal_error")


@router.delete("/interests/{poll_id}", response_model=dict)
async def unfollow_poll(
    poll_id: str,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_user)
):
    """Stop expiry emails for a poll."""
    try:
        poll = load_poll(db, poll_id)
        interest = interest_service.unfollow_poll(db, current_user.id, poll.id)
        return deleted_response(
            data=interest.to_dict() if interest else None,
            message="Stopped following poll"
        )

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error unfollowing poll {poll_id}: {e}")
        return error_response(message="Failed to unfollow poll", status_code=500, error="internal_error")


@router.put("/interests/{poll_id}", response_model=dict)
async def update_interest_preference(
    poll_id: str,
    preference: InterestPreferenceUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_user)
):
    try:
        poll = load_poll(db, poll_id)
        interest = interest_service.update_notification_preference(
            db, current_user.id, poll.id, preference.email_notifications_enabled
        )
        return updated_response(data=interest.to_dict(), message="Notification preference updated")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error updating interest in poll {poll_id}: {e}")
        return error_response(message="Failed to update preference", status_code=500, error="internal_error")


@router.get("/interests/{poll_id}/stats", response_model=dict)
async def get_interest_stats(
    poll_id: str,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_user)
):
    try:
        poll = load_poll(db, poll_id)
        return success_response(
            data=interest_service.get_poll_interest_stats(db, poll.id),
            message="Interest stats retrieved successfully"
        )
    except CustomException as e:
        return exception_response(e)
