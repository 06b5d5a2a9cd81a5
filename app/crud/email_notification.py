from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
import logging

from app.models.email_notification import EmailNotification

logger = logging.getLogger(__name__)


class EmailNotificationCRUD:
    """CRUD operations for EmailNotification model."""

    def was_sent(self, db: Session, user_id: UUID, poll_id: UUID, notification_type: str) -> bool:
        """Check whether this notification already went out."""
        return db.query(EmailNotification).filter(
            EmailNotification.user_id == user_id,
            EmailNotification.poll_id == poll_id,
            EmailNotification.notification_type == notification_type
        ).first() is not None

    def record(self, db: Session, user_id: UUID, poll_id: UUID, notification_type: str,
               email_address: str, provider_message_id: Optional[str] = None) -> EmailNotification:
        db_notification = EmailNotification(
            user_id=user_id,
            poll_id=poll_id,
            notification_type=notification_type,
            email_address=email_address,
            provider_message_id=provider_message_id
        )
        db.add(db_notification)
        db.commit()
        db.refresh(db_notification)
        return db_notification

    def count(self, db: Session, poll_id: Optional[UUID] = None) -> int:
        query = db.query(EmailNotification)
        if poll_id:
            query = query.filter(EmailNotification.poll_id == poll_id)
        return query.count()


# Create instance
email_notification_crud = EmailNotificationCRUD()
