from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, timezone

from app.core.security import sanitize_input
from app.utils.timeutils import utcnow

MIN_OPTIONS = 2
MAX_OPTIONS = 10
TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
OPTION_MAX_LENGTH = 200


def _clean_title(v: str) -> str:
    if v is None or not v.strip():
        raise ValueError('Title is required')
    if len(v.strip()) > TITLE_MAX_LENGTH:
        raise ValueError(f'Title must be {TITLE_MAX_LENGTH} characters or fewer')
    return sanitize_input(v, TITLE_MAX_LENGTH)


def _clean_description(v: Optional[str]) -> Optional[str]:
    if v is None or not v.strip():
        return None
    if len(v.strip()) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f'Description must be {DESCRIPTION_MAX_LENGTH} characters or fewer')
    return sanitize_input(v, DESCRIPTION_MAX_LENGTH)


def _future_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        v = v.replace(tzinfo=timezone.utc)
    v = v.astimezone(timezone.utc)
    if v <= utcnow():
        raise ValueError('Expiration date must be in the future')
    return v


class PollCreate(BaseModel):
    """Schema for creating a poll."""
    title: str = Field(..., description="Poll title")
    description: Optional[str] = Field(None, description="Poll description")
    options: List[str] = Field(..., description="Option texts in display order")
    allow_multiple_choices: bool = Field(False, description="Allow voting for several options")
    allow_anonymous: bool = Field(True, description="Accept votes from visitors without an account")
    expires_at: Optional[datetime] = Field(None, description="Poll expiration date")

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        return _clean_title(v)

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        return _clean_description(v)

    @field_validator('options')
    @classmethod
    def validate_options(cls, v):
        """Every option needs text; between 2 and 10 of them."""
        if len(v) < MIN_OPTIONS:
            raise ValueError(f'At least {MIN_OPTIONS} options are required')
        if len(v) > MAX_OPTIONS:
            raise ValueError(f'A poll can have at most {MAX_OPTIONS} options')
        if any(not opt or not opt.strip() for opt in v):
            raise ValueError('All options must have text')
        return [sanitize_input(opt, OPTION_MAX_LENGTH) for opt in v]

    @field_validator('expires_at')
    @classmethod
    def validate_expires_at(cls, v):
        return _future_utc(v)


class PollUpdate(BaseModel):
    """Schema for updating a poll. Omitted fields are left untouched."""
    title: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    allow_anonymous: Optional[bool] = None
    expires_at: Optional[datetime] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        return _clean_title(v)

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        if v is not None and len(v.strip()) > DESCRIPTION_MAX_LENGTH:
            raise ValueError(f'Description must be {DESCRIPTION_MAX_LENGTH} characters or fewer')
        return sanitize_input(v, DESCRIPTION_MAX_LENGTH) if v is not None else None

    @field_validator('is_active', 'allow_anonymous')
    @classmethod
    def validate_flags(cls, v, info):
        if v is None:
            raise ValueError(f'{info.field_name} must be true or false')
        return v

    @field_validator('expires_at')
    @classmethod
    def validate_expires_at(cls, v):
        return _future_utc(v)


class PollStatusUpdate(BaseModel):
    """Schema for toggling a poll from the dashboard."""
    is_active: bool
