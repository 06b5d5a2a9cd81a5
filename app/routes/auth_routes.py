from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import logging
import re

from app.core.auth import (
    require_user, redirect_by_role, create_session_token, session_lifetime,
    set_session_cookie, clear_session_cookie
)
from app.core.db import get_db
from app.core.rate_limit import login_attempt_limiter
from app.core.security import (
    DISPOSABLE_EMAIL_DOMAINS, extract_client_ip, sanitize_input, validate_password_strength
)
from app.crud.profile import profile_crud
from app.models.profile import Profile
from app.schemas.auth import LoginRequest, RegisterRequest
from app.services.settings_service import settings_service
from app.utils.exceptions import CustomException, RateLimitError, ValidationError
from app.utils.logger import security_logger
from app.utils.response_helper import (
    success_response, created_response, error_response, exception_response
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_payload(db: Session, profile: Profile):
    token = create_session_token(db, profile)
    return token, {
        "user": profile.to_dict(),
        "access_token": token,
        "token_type": "bearer",
        "redirect_to": redirect_by_role(profile)
    }


def check_email_rules(db: Session, email: str) -> None:
    """Apply the admin's email validation settings to a new address."""
    rules = settings_service.get_email_validation(db)
    domain = email.rsplit("@", 1)[-1].lower()

    if rules.allowed_domains and domain not in rules.allowed_domains:
        raise ValidationError(
            "Email domain is not allowed",
            field="email",
            error_code="email_domain_not_allowed"
        )
    if rules.block_disposable and domain in DISPOSABLE_EMAIL_DOMAINS:
        raise ValidationError(
            "Disposable email addresses are not allowed",
            field="email",
            error_code="disposable_email"
        )
    if rules.custom_regex and not re.match(rules.custom_regex, email):
        raise ValidationError(
            "Email address does not match the required format",
            field="email",
            error_code="email_format_rejected"
        )


@router.post("/login", response_model=dict)
async def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Sign in with email and password and start a cookie session."""
    client_ip = extract_client_ip(request)
    try:
        if not payload.email or not payload.password:
            raise ValidationError("Email and password are required", error_code="missing_credentials")

        email = payload.email.strip().lower()
        security = settings_service.get_security(db)
        lockout_seconds = security.lockout_duration_minutes * 60

        if await login_attempt_limiter.is_limited(email, security.max_login_attempts):
            security_logger.log_authentication_attempt(email, False, client_ip)
            raise RateLimitError(
                "Too many failed login attempts. Please try again later.",
                retry_after=lockout_seconds
            )

        profile = profile_crud.authenticate(db, email, payload.password)
        if not profile:
            security_logger.log_authentication_attempt(email, False, client_ip)
            await login_attempt_limiter.hit(
                email, limit=security.max_login_attempts, window=lockout_seconds
            )
            raise ValidationError("Invalid email or password", error_code="invalid_credentials")

        await login_attempt_limiter.reset(email)
        security_logger.log_authentication_attempt(email, True, client_ip)

        token, data = _session_payload(db, profile)
        response = success_response(data=data, message="Login successful")
        set_session_cookie(response, token, session_lifetime(db))
        return response

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Login failed: {e}")
        return error_response(message="Login failed", status_code=500, error="internal_error")


@router.post("/logout", response_model=dict)
async def logout():
    response = success_response(message="Logged out successfully")
    clear_session_cookie(response)
    return response


@router.post("/register", response_model=dict)
async def register(payload: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    """
    Create an account and sign it in.

    The address must pass the email validation settings and the password
    must satisfy the security settings' length and complexity rules.
    """
    try:
        email = str(payload.email).strip().lower()
        check_email_rules(db, email)

        security = settings_service.get_security(db)
        problems = validate_password_strength(
            payload.password,
            min_length=security.min_password_length,
            require_complexity=security.require_password_complexity
        )
        if problems:
            raise ValidationError(
                problems[0],
                field="password",
                error_code="weak_password",
                details={"problems": problems}
            )

        profile = profile_crud.create(
            db,
            email=email,
            password=payload.password,
            username=sanitize_input(payload.username, 50) or None,
            full_name=sanitize_input(payload.full_name, 100) or None
        )
        security_logger.log_authentication_attempt(email, True, extract_client_ip(request))

        token, data = _session_payload(db, profile)
        response = created_response(data=data, message="Account created successfully")
        set_session_cookie(response, token, session_lifetime(db))
        return response

    except CustomException as e:
        return exception_response(e)
    except Exception as e:
        logger.error(f"Registration failed: {e}")
        return error_response(message="Registration failed", status_code=500, error="internal_error")


@router.get("/me", response_model=dict)
async def me(current_user: Profile = Depends(require_user)):
    return success_response(data=current_user.to_dict(), message="Profile retrieved successfully")
