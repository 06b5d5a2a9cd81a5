from sqlalchemy.orm import Session
from typing import Dict, List, Any, Optional
from datetime import datetime, timedelta
from dataclasses import dataclass
from pathlib import Path
from jinja2 import Environment, FileSystemLoader, select_autoescape
import logging

from app.core.config import settings
from app.crud.email_notification import email_notification_crud
from app.crud.poll import poll_crud
from app.crud.poll_interest import poll_interest_crud
from app.models.email_notification import (
    NOTIFICATION_EXPIRED, NOTIFICATION_EXPIRING_2H, NOTIFICATION_EXPIRING_24H
)
from app.models.poll import Poll
from app.services.email_client import ResendEmailClient, EmailResult, email_client
from app.utils.timeutils import utcnow, as_utc

logger = logging.getLogger(__name__)

TIME_UNTIL_EXPIRY = {
    NOTIFICATION_EXPIRING_24H: "in 24 hours",
    NOTIFICATION_EXPIRING_2H: "in 2 hours",
    NOTIFICATION_EXPIRED: "now (ended)",
}

EMAIL_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "emails"

email_templates = Environment(
    loader=FileSystemLoader(str(EMAIL_TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"])
)


@dataclass
class NotificationRecipient:
    user_id: Any
    poll_id: Any
    email: str
    name: str
    poll_title: str
    poll_url: str
    expires_at: datetime


def get_notification_type(expires_at: datetime, now: Optional[datetime] = None) -> Optional[str]:
    """
    Classify a poll by how close it is to closing.

    Returns:
        Optional[str]: ``expired``, ``expiring_2h``, ``expiring_24h`` or None
    """
    now = now or utcnow()
    hours_left = (as_utc(expires_at) - now).total_seconds() / 3600
    if hours_left <= 0:
        return NOTIFICATION_EXPIRED
    if hours_left <= 2:
        return NOTIFICATION_EXPIRING_2H
    if hours_left <= 24:
        return NOTIFICATION_EXPIRING_24H
    return None


class NotificationService:
    """Sends poll expiry emails to interested profiles."""

    def __init__(self, client: Optional[ResendEmailClient] = None):
        self.email_client = client or email_client

    def poll_url(self, poll: Poll) -> str:
        return f"{settings.app_url.rstrip('/')}/polls/{poll.id}"

    def get_users_to_notify(self, db: Session, poll: Poll) -> List[NotificationRecipient]:
        """Interested profiles with email switched on both for the poll and globally."""
        recipients = []
        for interest in poll_interest_crud.get_subscribers(db, poll.id):
            profile = interest.user
            if not profile or not profile.email:
                continue
            recipients.append(NotificationRecipient(
                user_id=profile.id,
                poll_id=poll.id,
                email=profile.email,
                name=profile.display_name,
                poll_title=poll.title,
                poll_url=self.poll_url(poll),
                expires_at=as_utc(poll.expires_at)
            ))
        return recipients

    def render(self, recipient: NotificationRecipient, notification_type: str) -> Dict[str, str]:
        """
        Build subject, HTML and plain text for one notification.

        Returns:
            dict: ``subject``, ``html`` and ``text``
        """
        context = {
            "app_name": settings.app_name,
            "user_name": recipient.name,
            "poll_title": recipient.poll_title,
            "poll_url": recipient.poll_url,
            "expires_at": recipient.expires_at.strftime("%Y-%m-%d %H:%M UTC"),
            "time_until_expiry": TIME_UNTIL_EXPIRY[notification_type],
            "expired": notification_type == NOTIFICATION_EXPIRED,
        }

        if notification_type == NOTIFICATION_EXPIRED:
            subject = f'Poll Results: "{recipient.poll_title}" has ended'
        else:
            subject = f'Poll "{recipient.poll_title}" expires {context["time_until_expiry"]}'

        return {
            "subject": subject,
            "html": email_templates.get_template("poll_notification.html").render(**context),
            "text": email_templates.get_template("poll_notification.txt").render(**context),
        }

    async def send_notification(self, db: Session, recipient: NotificationRecipient,
                                notification_type: str) -> EmailResult:
        """Send one expiry email unless it already went out."""
        if email_notification_crud.was_sent(db, recipient.user_id, recipient.poll_id, notification_type):
            return EmailResult(success=True, message_id="already_sent")

        content = self.render(recipient, notification_type)
        result = await self.email_client.send(
            to=recipient.email,
            subject=content["subject"],
            html=content["html"],
            text=content["text"],
            tags=[
                {"name": "type", "value": "poll_notification"},
                {"name": "notification_type", "value": notification_type},
                {"name": "poll_id", "value": str(recipient.poll_id)},
            ]
        )

        if result.success:
            email_notification_crud.record(
                db,
                user_id=recipient.user_id,
                poll_id=recipient.poll_id,
                notification_type=notification_type,
                email_address=recipient.email,
                provider_message_id=result.message_id
            )
        return result

    async def process_expiring_polls(self, db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Send due expiry emails for every active poll closing within 24 hours.

        Returns:
            dict: ``polls_checked``, ``sent``, ``skipped`` and ``failed`` counts
        """
        now = now or utcnow()
        summary = {"polls_checked": 0, "sent": 0, "skipped": 0, "failed": 0}

        for poll in poll_crud.get_expiring(db, within=timedelta(hours=24)):
            notification_type = get_notification_type(poll.expires_at, now)
            if notification_type is None:
                continue
            summary["polls_checked"] += 1

            for recipient in self.get_users_to_notify(db, poll):
                result = await self.send_notification(db, recipient, notification_type)
                if result.message_id == "already_sent":
                    summary["skipped"] += 1
                elif result.success:
                    summary["sent"] += 1
                else:
                    summary["failed"] += 1

        logger.info(f"Expiry notifications processed: {summary}")
        return summary


notification_service = NotificationService()
