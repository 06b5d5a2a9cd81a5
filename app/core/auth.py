from fastapi import Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session
from datetime import timedelta
from typing import Optional
from uuid import UUID
import logging

from app.core.config import settings
from app.core.db import get_db
from app.core.security import create_access_token, verify_token
from app.crud.profile import profile_crud
from app.models.profile import Profile, ROLE_ADMIN
from app.services.settings_service import settings_service
from app.utils.exceptions import AuthenticationError, AuthorizationError, PageRedirect

logger = logging.getLogger(__name__)

LOGIN_PAGE = "/auth/login"
UNAUTHORIZED_PAGE = "/unauthorized"


def get_token_from_request(request: Request) -> Optional[str]:
    """Session token from the Authorization header, falling back to the cookie."""
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get(settings.session_cookie_name)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[Profile]:
    """Resolve the session profile, or None for anonymous visitors."""
    token = get_token_from_request(request)
    if not token:
        return None

    payload = verify_token(token)
    if not payload or not payload.get("sub"):
        return None

    try:
        profile_id = UUID(str(payload["sub"]))
    except ValueError:
        logger.warning("Token subject is not a profile id")
        return None

    return profile_crud.get(db, profile_id)


def require_user(current_user: Optional[Profile] = Depends(get_current_user)) -> Profile:
    if current_user is None:
        raise AuthenticationError()
    return current_user


def require_admin(current_user: Optional[Profile] = Depends(get_current_user)) -> Profile:
    """API guard: 401 without a session, 403 for non-admins."""
    if current_user is None:
        raise AuthenticationError()
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user


def require_user_page(current_user: Optional[Profile] = Depends(get_current_user)) -> Profile:
    if current_user is None:
        raise PageRedirect(LOGIN_PAGE)
    return current_user


def require_admin_page(current_user: Optional[Profile] = Depends(get_current_user)) -> Profile:
    """Page guard: send visitors to the login page and non-admins to /unauthorized."""
    if current_user is None:
        raise PageRedirect(LOGIN_PAGE)
    if not current_user.is_admin:
        raise PageRedirect(UNAUTHORIZED_PAGE)
    return current_user


def get_user_role(profile: Optional[Profile]) -> Optional[str]:
    return profile.role if profile else None


def redirect_by_role(profile: Optional[Profile]) -> str:
    """Landing page after login."""
    if get_user_role(profile) == ROLE_ADMIN:
        return "/admin/dashboard"
    return "/dashboard"


def session_lifetime(db: Session) -> timedelta:
    """Token lifetime from the security settings, else the configured default."""
    hours = settings_service.get_security(db).session_timeout_hours
    if hours:
        return timedelta(hours=hours)
    return timedelta(minutes=settings.access_token_expire_minutes)


def create_session_token(db: Session, profile: Profile) -> str:
    return create_access_token(
        {"sub": str(profile.id), "role": profile.role},
        expires_delta=session_lifetime(db)
    )


def set_session_cookie(response: Response, token: str, lifetime: timedelta) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=int(lifetime.total_seconds()),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax"
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name)
