from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional


class LoginRequest(BaseModel):
    """Schema for email/password login."""
    email: Optional[str] = Field(None, description="Account email")
    password: Optional[str] = Field(None, description="Account password")


class RegisterRequest(BaseModel):
    """Schema for creating an account."""
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., description="Password")
    confirm_password: str = Field(..., description="Password confirmation")
    username: Optional[str] = Field(None, max_length=50)
    full_name: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self
