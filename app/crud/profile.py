from sqlalchemy.orm import Session
from sqlalchemy import or_, desc
from sqlalchemy.exc import IntegrityError
from typing import Optional, List
from uuid import UUID
import logging

from app.models.profile import Profile, ROLE_USER, ROLES
from app.core.security import get_password_hash, verify_password
from app.utils.exceptions import ConflictError, ValidationError, handle_database_error

logger = logging.getLogger(__name__)


class ProfileCRUD:
    """CRUD operations for Profile model."""

    def create(self, db: Session, email: str, password: str, username: Optional[str] = None,
               full_name: Optional[str] = None, role: str = ROLE_USER) -> Profile:
        """
        Create a new profile.

        Args:
            db: Database session
            email: Account email, stored lower-cased
            password: Plain text password, hashed before storage
            username: Optional display handle, defaults to the email local part
            full_name: Optional full name
            role: Initial role

        Returns:
            Profile: Created profile

        Raises:
            ConflictError: If the email is already registered
        """
        email = email.strip().lower()
        if self.get_by_email(db, email):
            raise ConflictError("An account with this email already exists", resource="Profile")

        db_profile = Profile(
            email=email,
            username=(username or email.split("@")[0])[:50],
            full_name=full_name,
            hashed_password=get_password_hash(password),
            role=role
        )

        db.add(db_profile)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise handle_database_error(e)
        db.refresh(db_profile)

        logger.info(f"Profile created: {db_profile.email}")
        return db_profile

    def get(self, db: Session, profile_id: UUID) -> Optional[Profile]:
        """Get profile by ID."""
        return db.query(Profile).filter(Profile.id == profile_id).first()

    def get_by_email(self, db: Session, email: str) -> Optional[Profile]:
        """Get profile by email."""
        return db.query(Profile).filter(Profile.email == email.strip().lower()).first()

    def get_multiple(self, db: Session, skip: int = 0, limit: int = 100,
                     search: Optional[str] = None) -> List[Profile]:
        """Get profiles, newest first, optionally filtered by name or email."""
        query = db.query(Profile)
        if search:
            query = query.filter(
                or_(
                    Profile.username.ilike(f"%{search}%"),
                    Profile.email.ilike(f"%{search}%"),
                    Profile.full_name.ilike(f"%{search}%")
                )
            )
        return query.order_by(desc(Profile.created_at)).offset(skip).limit(limit).all()

    def get_recent(self, db: Session, limit: int = 5) -> List[Profile]:
        return db.query(Profile).order_by(desc(Profile.created_at)).limit(limit).all()

    def count(self, db: Session, role: Optional[str] = None) -> int:
        query = db.query(Profile)
        if role:
            query = query.filter(Profile.role == role)
        return query.count()

    def authenticate(self, db: Session, email: str, password: str) -> Optional[Profile]:
        """
        Authenticate a profile by email and password.

        Returns:
            Profile: Authenticated profile or None
        """
        profile = self.get_by_email(db, email)
        if not profile or not verify_password(password, profile.hashed_password):
            return None
        return profile

    def update_role(self, db: Session, profile_id: UUID, role: str) -> Optional[Profile]:
        """Change a profile's role; returns None when the profile is missing."""
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}", field="role")

        db_profile = self.get(db, profile_id)
        if not db_profile:
            return None

        db_profile.role = role
        db.commit()
        db.refresh(db_profile)

        logger.info(f"Profile role updated: {db_profile.email} -> {role}")
        return db_profile

    def update_notification_settings(self, db: Session, profile: Profile,
                                     email_notifications_enabled: Optional[bool] = None,
                                     notification_frequency: Optional[str] = None) -> Profile:
        if email_notifications_enabled is not None:
            profile.email_notifications_enabled = email_notifications_enabled
        if notification_frequency is not None:
            profile.notification_frequency = notification_frequency

        db.commit()
        db.refresh(profile)
        return profile

    def delete(self, db: Session, profile_id: UUID) -> bool:
        """
        Delete a profile together with its polls, votes and interests.

        Returns:
            bool: True if deleted, False if not found
        """
        db_profile = self.get(db, profile_id)
        if not db_profile:
            return False

        db.delete(db_profile)
        db.commit()

        logger.info(f"Profile deleted: {db_profile.email}")
        return True


# Create instance
profile_crud = ProfileCRUD()
