from sqlalchemy.orm import Session
from typing import Dict, Any, Type
from pydantic import BaseModel, ValidationError as PydanticValidationError
import logging

from app.crud.app_setting import app_setting_crud
from app.schemas.app_setting import (
    SETTINGS_SCHEMAS, GeneralSettings, EmailValidationSettings, SecuritySettings
)
from app.utils.exceptions import ValidationError, NotFoundError

logger = logging.getLogger(__name__)


class SettingsService:
    """Admin-editable settings, stored as JSON documents and merged over defaults."""

    def _schema(self, key: str) -> Type[BaseModel]:
        schema = SETTINGS_SCHEMAS.get(key)
        if schema is None:
            raise NotFoundError(resource="Settings section", identifier=key)
        return schema

    def get_section(self, db: Session, key: str) -> BaseModel:
        """
        Load one settings namespace.

        Stored values override the defaults field by field; a stored
        document that no longer validates falls back to the defaults.
        """
        schema = self._schema(key)
        row = app_setting_crud.get(db, key)
        stored = row.value if row and isinstance(row.value, dict) else {}
        try:
            return schema(**stored)
        except PydanticValidationError as e:
            logger.warning(f"Stored settings '{key}' are invalid, using defaults: {e}")
            return schema()

    def get_general(self, db: Session) -> GeneralSettings:
        return self.get_section(db, "general")

    def get_email_validation(self, db: Session) -> EmailValidationSettings:
        return self.get_section(db, "email_validation")

    def get_security(self, db: Session) -> SecuritySettings:
        return self.get_section(db, "security")

    def get_all(self, db: Session) -> Dict[str, Dict[str, Any]]:
        return {key: self.get_section(db, key).model_dump() for key in SETTINGS_SCHEMAS}

    def update_section(self, db: Session, key: str, values: Dict[str, Any]) -> BaseModel:
        """
        Validate and upsert a settings namespace.

        Args:
            db: Database session
            key: ``general``, ``email_validation`` or ``security``
            values: Fields to change; unspecified fields keep their current value

        Returns:
            BaseModel: The saved settings

        Raises:
            ValidationError: If any value is rejected
        """
        schema = self._schema(key)
        merged = {**self.get_section(db, key).model_dump(), **(values or {})}
        try:
            section = schema(**merged)
        except PydanticValidationError as e:
            first = e.errors()[0]
            message = first.get("msg", "Invalid settings").removeprefix("Value error, ")
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationError(message, field=field or None)

        app_setting_crud.upsert(db, key, section.model_dump())
        return section


settings_service = SettingsService()
