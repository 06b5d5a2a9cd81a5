from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from app.core.auth import require_admin
from app.core.db import get_db
from app.core.security import is_valid_uuid
from app.crud.poll import poll_crud
from app.crud.profile import profile_crud
from app.models.profile import Profile, ROLE_ADMIN
from app.routes.poll_routes import load_poll
from app.schemas.poll import PollStatusUpdate
from app.schemas.profile import RoleUpdate
from app.services.analytics_service import analytics_service
from app.services.notification_service import notification_service
from app.services.settings_service import settings_service
from app.utils.exceptions import CustomException, UserNotFoundError, ValidationError
from app.utils.logger import security_logger
from app.utils.response_helper import (
    success_response, error_response, exception_response, paginated_response,
    updated_response, deleted_response
)

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_user_id(user_id: str) -> UUID:
    if not is_valid_uuid(user_id):
        raise ValidationError("Invalid user ID format", field="user_id", error_code="invalid_user_id")
    return UUID(user_id)


def _profile_summary(profile: Profile) -> Dict[str, Any]:
    data = profile.to_dict()
    data["polls_count"] = len(profile.polls)
    data["votes_count"] = len(profile.votes)
    return data


# Users

@router.get("/users", response_model=dict)
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin)
):
    try:
        profiles = profile_crud.get_multiple(db, skip=skip, limit=limit, search=search)
        return paginated_response(
            data=[_profile_summary(profile) for profile in profiles],
            page=(skip // limit) + 1,
            per_page=limit,
            total=profile_crud.count(db),
            message="Users retrieved successfully"
        )
    except Exception as e:
        logger.error(f"Error listing users: {e}")
        return error_response(message="Failed to retrieve users", status_code=500, error="internal_error")


@router.put("/users/{user_id}/role", response_model=dict)
async def update_user_role(
    user_id: str,
    role_data: RoleUpdate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin)
):
    """Promote or demote a user. Admins cannot demote themselves."""
    try:
        profile_id = parse_user_id(user_id)
        if profile_id == admin.id and role_data.role != ROLE_ADMIN:
            raise ValidationError(
                "You cannot remove your own admin role",
                field="role",
                error_code="cannot_demote_self"
            )

        profile = profile_crud.update_role(db, profile_id, role_data.role)
        if not profile:
            raise UserNotFoundError(user_id)

        security_logger.log_admin_action(str(admin.id), f"set_role:{role_data.role}", user_id)
        return updated_response(data=profile.to_dict(), message="User role updated successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error updating role for {user_id}: {e}")
        return error_response(message="Failed to update user role", status_code=500, error="internal_error")


@router.delete("/users/{user_id}", response_model=dict)
async def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin)
):
    """Delete a user together with their polls and votes."""
    try:
        profile_id = parse_user_id(user_id)
        if profile_id == admin.id:
            raise ValidationError("You cannot delete your own account", error_code="cannot_delete_self")

        if not profile_crud.delete(db, profile_id):
            raise UserNotFoundError(user_id)

        security_logger.log_admin_action(str(admin.id), "delete_user", user_id)
        return deleted_response(data={"deleted_user_id": user_id}, message="User deleted successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error deleting user {user_id}: {e}")
        return error_response(message="Failed to delete user", status_code=500, error="internal_error")


# Polls

@router.get("/polls", response_model=dict)
async def list_polls(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin)
):
    """Every poll, active or not."""
    try:
        polls = poll_crud.get_all(db, skip=skip, limit=limit, search=search)
        return paginated_response(
            data=[poll.to_dict() for poll in polls],
            page=(skip // limit) + 1,
            per_page=limit,
            total=poll_crud.count(db),
            message="Polls retrieved successfully"
        )
    except Exception as e:
        logger.error(f"Error listing polls: {e}")
        return error_response(message="Failed to retrieve polls", status_code=500, error="internal_error")


@router.put("/polls/{poll_id}/status", response_model=dict)
async def update_poll_status(
    poll_id: str,
    status_data: PollStatusUpdate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin)
):
    try:
        poll = poll_crud.set_status(db, load_poll(db, poll_id), status_data.is_active)
        security_logger.log_admin_action(
            str(admin.id), "activate_poll" if status_data.is_active else "deactivate_poll", poll_id
        )
        return updated_response(data=poll.to_dict(), message="Poll status updated successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error updating status of poll {poll_id}: {e}")
        return error_response(message="Failed to update poll status", status_code=500, error="internal_error")


@router.delete("/polls/{poll_id}", response_model=dict)
async def delete_poll(
    poll_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin)
):
    try:
        result = poll_crud.delete(db, load_poll(db, poll_id))
        security_logger.log_admin_action(str(admin.id), "delete_poll", poll_id)
        return deleted_response(data=result, message="Poll deleted successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error deleting poll {poll_id}: {e}")
        return error_response(message="Failed to delete poll", status_code=500, error="internal_error")


@router.get("/polls/{poll_id}/analytics", response_model=dict)
async def get_poll_analytics(
    poll_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin)
):
    try:
        poll = load_poll(db, poll_id)
        return success_response(
            data=analytics_service.get_poll_analytics(db, poll.id),
            message="Poll analytics retrieved successfully"
        )
    except CustomException as e:
        return exception_response(e)


# Settings

@router.get("/settings", response_model=dict)
async def get_settings(db: Session = Depends(get_db), admin: Profile = Depends(require_admin)):
    return success_response(data=settings_service.get_all(db), message="Settings retrieved successfully")


@router.put("/settings/{section}", response_model=dict)
async def update_settings(
    section: str,
    values: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin)
):
    """Save one settings section: ``general``, ``email_validation`` or ``security``."""
    try:
        saved = settings_service.update_section(db, section, values)
        security_logger.log_admin_action(str(admin.id), "update_settings", section)
        return updated_response(data=saved.model_dump(), message="Settings saved successfully")

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Error saving settings '{section}': {e}")
        return error_response(message="Failed to save settings", status_code=500, error="internal_error")


# Analytics and maintenance

@router.get("/analytics", response_model=dict)
async def get_analytics(db: Session = Depends(get_db), admin: Profile = Depends(require_admin)):
    try:
        return success_response(
            data=analytics_service.get_dashboard_analytics(db),
            message="Analytics retrieved successfully"
        )
    except Exception as e:
        logger.error(f"Error building analytics: {e}")
        return error_response(message="Failed to retrieve analytics", status_code=500, error="internal_error")


@router.post("/notifications/run", response_model=dict)
async def run_notifications(db: Session = Depends(get_db), admin: Profile = Depends(require_admin)):
    """Send any due poll expiry emails now."""
    try:
        summary = await notification_service.process_expiring_polls(db)
        security_logger.log_admin_action(str(admin.id), "run_notifications")
        return success_response(data=summary, message="Notifications processed")
    except Exception as e:
        logger.error(f"Error processing notifications: {e}")
        return error_response(message="Failed to process notifications", status_code=500, error="internal_error")
