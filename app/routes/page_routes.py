from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from pathlib import Path
from typing import Optional
from uuid import UUID
import logging

from app.core.auth import (
    get_current_user, require_user_page, require_admin_page, redirect_by_role
)
from app.core.config import settings
from app.core.db import get_db
from app.core.security import extract_client_ip, is_valid_uuid
from app.crud.poll import poll_crud
from app.crud.profile import profile_crud
from app.models.profile import Profile
from app.services.analytics_service import analytics_service
from app.services.interest_service import interest_service
from app.services.settings_service import settings_service
from app.services.vote_service import vote_service, VoterIdentity

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(include_in_schema=False)


def render(request: Request, name: str, current_user: Optional[Profile] = None,
           status_code: int = 200, **context) -> HTMLResponse:
    context.update({
        "app_name": settings.app_name,
        "current_user": current_user,
    })
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def render_error(request: Request, current_user: Optional[Profile], status_code: int, message: str) -> HTMLResponse:
    return render(request, "error.html", current_user, status_code=status_code,
                  status=status_code, message=message)


# Public pages

@router.get("/", response_class=HTMLResponse)
@router.get("/polls", response_class=HTMLResponse)
async def polls_page(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[Profile] = Depends(get_current_user)
):
    polls = poll_crud.get_active(db, limit=50)
    return render(request, "polls.html", current_user, polls=[poll.to_dict() for poll in polls])


@router.get("/polls/{poll_id}", response_class=HTMLResponse)
async def poll_detail_page(
    poll_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[Profile] = Depends(get_current_user)
):
    """Poll results with a voting form that posts to the JSON API."""
    poll = poll_crud.get_with_details(db, UUID(poll_id)) if is_valid_uuid(poll_id) else None
    if not poll:
        return render_error(request, current_user, 404, "Poll not found")

    if not poll.is_active:
        can_see = current_user is not None and (current_user.is_admin or current_user.id == poll.creator_id)
        if not can_see:
            return render_error(request, current_user, 403, "Poll is not accessible")

    identity = VoterIdentity.resolve(current_user, extract_client_ip(request))
    return render(
        request, "poll_detail.html", current_user,
        poll=poll.to_dict(),
        user_votes=vote_service.get_user_votes(db, poll.id, identity),
        eligibility=vote_service.check_can_vote(db, poll.id, identity)
    )


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_user_page)
):
    polls = poll_crud.get_by_creator(db, current_user.id)
    return render(
        request, "dashboard.html", current_user,
        polls=[poll.to_dict() for poll in polls],
        stats=analytics_service.get_user_stats(db),
        interests=[i.to_dict(include_poll=True) for i in interest_service.get_user_interests(db, current_user.id)]
    )


@router.get("/auth/login", response_class=HTMLResponse)
async def login_page(request: Request, current_user: Optional[Profile] = Depends(get_current_user)):
    if current_user is not None:
        return RedirectResponse(redirect_by_role(current_user), status_code=303)
    return render(request, "login.html")


@router.get("/auth/register", response_class=HTMLResponse)
async def register_page(request: Request, current_user: Optional[Profile] = Depends(get_current_user)):
    if current_user is not None:
        return RedirectResponse(redirect_by_role(current_user), status_code=303)
    return render(request, "register.html")


@router.get("/unauthorized", response_class=HTMLResponse)
async def unauthorized_page(request: Request, current_user: Optional[Profile] = Depends(get_current_user)):
    return render(request, "unauthorized.html", current_user, status_code=403)


# Admin pages

@router.get("/admin/dashboard", response_class=HTMLResponse)
async def admin_dashboard_page(
    request: Request,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin_page)
):
    return render(
        request, "admin/dashboard.html", admin,
        totals=analytics_service.get_platform_totals(db),
        recent_polls=[poll.to_dict(include_options=False) for poll in poll_crud.get_recent(db)],
        recent_users=[profile.to_dict() for profile in profile_crud.get_recent(db)]
    )


@router.get("/admin/users", response_class=HTMLResponse)
async def admin_users_page(
    request: Request,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin_page)
):
    users = profile_crud.get_multiple(db, limit=200)
    return render(request, "admin/users.html", admin, users=[profile.to_dict() for profile in users])


@router.get("/admin/polls", response_class=HTMLResponse)
async def admin_polls_page(
    request: Request,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin_page)
):
    polls = poll_crud.get_all(db, limit=200)
    return render(request, "admin/polls.html", admin, polls=[poll.to_dict(include_options=False) for poll in polls])


@router.get("/admin/settings", response_class=HTMLResponse)
async def admin_settings_page(
    request: Request,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin_page)
):
    return render(request, "admin/settings.html", admin, sections=settings_service.get_all(db))


@router.get("/admin/analytics", response_class=HTMLResponse)
async def admin_analytics_page(
    request: Request,
    db: Session = Depends(get_db),
    admin: Profile = Depends(require_admin_page)
):
    analytics = analytics_service.get_dashboard_analytics(db)
    return render(request, "admin/analytics.html", admin, analytics=analytics)
