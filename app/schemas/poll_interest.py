from pydantic import BaseModel


class InterestPreferenceUpdate(BaseModel):
    """Per-poll email switch."""
    email_notifications_enabled: bool
