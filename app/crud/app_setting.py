from sqlalchemy.orm import Session
from typing import Optional, Dict, Any, List
import logging

from app.models.app_setting import AppSetting

logger = logging.getLogger(__name__)


class AppSettingCRUD:
    """CRUD operations for AppSetting model."""

    def get(self, db: Session, key: str) -> Optional[AppSetting]:
        """Get a settings row by key."""
        return db.query(AppSetting).filter(AppSetting.key == key).first()

    def get_all(self, db: Session) -> List[AppSetting]:
        return db.query(AppSetting).order_by(AppSetting.key).all()

    def upsert(self, db: Session, key: str, value: Dict[str, Any]) -> AppSetting:
        """
        Insert or replace the document stored under ``key``.

        Args:
            db: Database session
            key: Settings namespace
            value: JSON-serializable document

        Returns:
            AppSetting: Stored row
        """
        db_setting = self.get(db, key)
        if db_setting:
            db_setting.value = value
        else:
            db_setting = AppSetting(key=key, value=value)
            db.add(db_setting)

        db.commit()
        db.refresh(db_setting)

        logger.info(f"Settings saved: {key}")
        return db_setting


# Create instance
app_setting_crud = AppSettingCRUD()
