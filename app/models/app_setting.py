from sqlalchemy import Column, String, DateTime, JSON, Integer
from sqlalchemy.sql import func

from app.core.db import Base
from app.utils.timeutils import utcnow, isoformat


class AppSetting(Base):
    """Admin-editable settings document stored under a namespace key."""

    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<AppSetting(key={self.key})>"

    def to_dict(self):
        return {
            "key": self.key,
            "value": self.value,
            "updated_at": isoformat(self.updated_at)
        }
