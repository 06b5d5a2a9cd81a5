from pydantic import BaseModel, Field, field_validator
from typing import List, Union
import re


class GeneralSettings(BaseModel):
    """Site-wide behaviour switches."""
    app_name: str = "Polling App"
    max_polls_per_user: int = Field(50, ge=0)
    allow_anonymous_voting: bool = True
    default_poll_expiry_days: int = Field(30, ge=0)

    @field_validator('app_name')
    @classmethod
    def validate_app_name(cls, v):
        if not v or not v.strip():
            raise ValueError('App name is required')
        return v.strip()


class EmailValidationSettings(BaseModel):
    """Rules applied to addresses at registration."""
    allowed_domains: List[str] = []
    block_disposable: bool = False
    custom_regex: str = ""

    @field_validator('allowed_domains', mode='before')
    @classmethod
    def split_domains(cls, v: Union[str, List[str], None]):
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(',')
        return [d.strip().lower() for d in v if d and d.strip()]

    @field_validator('custom_regex')
    @classmethod
    def validate_regex(cls, v):
        if v:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f'Invalid regular expression: {e}')
        return v


class SecuritySettings(BaseModel):
    """Login and password policy."""
    require_email_verification: bool = False
    max_login_attempts: int = Field(5, ge=1)
    lockout_duration_minutes: int = Field(15, ge=1)
    session_timeout_hours: int = Field(24, ge=1)
    enable_two_factor: bool = False
    min_password_length: int = Field(8, ge=1)
    require_password_complexity: bool = True


SETTINGS_SCHEMAS = {
    "general": GeneralSettings,
    "email_validation": EmailValidationSettings,
    "security": SecuritySettings,
}
