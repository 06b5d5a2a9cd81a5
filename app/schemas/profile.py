from pydantic import BaseModel
from typing import Optional, Literal


class RoleUpdate(BaseModel):
    """Schema for an admin changing a user's role."""
    role: Literal["admin", "user"]


class NotificationSettingsUpdate(BaseModel):
    """Profile-level email preferences."""
    email_notifications_enabled: Optional[bool] = None
    notification_frequency: Optional[Literal["instant", "daily", "weekly"]] = None
