from sqlalchemy.orm import Session
from typing import Dict, List, Any, Optional
from datetime import datetime, timedelta
from uuid import UUID
import logging

from app.models.poll import Poll
from app.models.profile import Profile
from app.models.vote import Vote
from app.crud.email_notification import email_notification_crud
from app.crud.poll import poll_crud
from app.crud.profile import profile_crud
from app.crud.vote import vote_crud
from app.utils.timeutils import utcnow, isoformat

logger = logging.getLogger(__name__)

TREND_WINDOW = timedelta(days=30)
WEEKS_SHOWN = 4


def format_percentage_change(current: int, previous: int) -> str:
    """
    Render period-over-period change as a signed percentage.

    A previous value of zero always reads ``+100%``.
    """
    if previous == 0:
        return "+100%"
    change = (current - previous) / previous * 100
    sign = "+" if change >= 0 else ""
    return f"{sign}{change:.1f}%"


class AnalyticsService:
    """Service for handling analytics and reporting."""

    def __init__(self):
        self.poll_crud = poll_crud
        self.vote_crud = vote_crud
        self.profile_crud = profile_crud

    def _count_between(self, db: Session, model, start: datetime, end: Optional[datetime] = None) -> int:
        query = db.query(model).filter(model.created_at >= start)
        if end is not None:
            query = query.filter(model.created_at < end)
        return query.count()

    def get_platform_totals(self, db: Session) -> Dict[str, int]:
        """Headline counts for the admin dashboard."""
        return {
            "total_users": self.profile_crud.count(db),
            "total_polls": self.poll_crud.count(db),
            "total_votes": self.vote_crud.count(db),
            "active_polls": self.poll_crud.count(db, active_only=True)
        }

    def get_recent_activity(self, db: Session, hours: int = 1) -> Dict[str, Any]:
        """
        What happened in the last ``hours``.

        Returns:
            dict: Counts plus the latest polls, votes and sign-ups
        """
        since = utcnow() - timedelta(hours=hours)

        recent_polls = [
            {
                "id": str(poll.id),
                "title": poll.title,
                "creator": poll.creator.username if poll.creator else None,
                "created_at": isoformat(poll.created_at)
            }
            for poll in db.query(Poll).filter(Poll.created_at >= since)
            .order_by(Poll.created_at.desc()).limit(10).all()
        ]
        recent_votes = [
            {
                "id": str(vote.id),
                "poll_id": str(vote.poll_id),
                "poll_title": vote.poll.title if vote.poll else None,
                "option_text": vote.option.text if vote.option else None,
                "voter": vote.user.username if vote.user else "Anonymous",
                "created_at": isoformat(vote.created_at)
            }
            for vote in self.vote_crud.get_recent(db, limit=10, since=since)
        ]
        recent_users = [
            {
                "id": str(profile.id),
                "username": profile.username,
                "created_at": isoformat(profile.created_at)
            }
            for profile in db.query(Profile).filter(Profile.created_at >= since)
            .order_by(Profile.created_at.desc()).limit(10).all()
        ]

        return {
            "window_hours": hours,
            "new_polls": self._count_between(db, Poll, since),
            "new_votes": self._count_between(db, Vote, since),
            "new_users": self._count_between(db, Profile, since),
            "polls": recent_polls,
            "votes": recent_votes,
            "users": recent_users
        }

    def get_trends(self, db: Session, now: Optional[datetime] = None) -> Dict[str, Dict[str, Any]]:
        """Last 30 days against the 30 days before that."""
        now = now or utcnow()
        current_start = now - TREND_WINDOW
        previous_start = current_start - TREND_WINDOW

        trends = {}
        for name, model in (("users", Profile), ("polls", Poll), ("votes", Vote)):
            current = self._count_between(db, model, current_start, now)
            previous = self._count_between(db, model, previous_start, current_start)
            trends[name] = {
                "current": current,
                "previous": previous,
                "change": format_percentage_change(current, previous)
            }
        return trends

    def get_weekly_activity(self, db: Session, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Four one-week buckets, oldest first, labelled Week 1 to Week 4."""
        now = now or utcnow()
        weeks = []
        for index in range(WEEKS_SHOWN):
            end = now - timedelta(weeks=WEEKS_SHOWN - index - 1)
            start = end - timedelta(weeks=1)
            weeks.append({
                "label": f"Week {index + 1}",
                "start": start.isoformat(),
                "end": end.isoformat(),
                "polls": self._count_between(db, Poll, start, end),
                "votes": self._count_between(db, Vote, start, end),
                "users": self._count_between(db, Profile, start, end)
            })
        return weeks

    def get_dashboard_analytics(self, db: Session) -> Dict[str, Any]:
        """Everything the admin analytics screen shows."""
        now = utcnow()
        return {
            "totals": self.get_platform_totals(db),
            "recent_activity": self.get_recent_activity(db, hours=1),
            "trends": self.get_trends(db, now),
            "weekly": self.get_weekly_activity(db, now),
            "generated_at": now.isoformat()
        }

    def get_user_stats(self, db: Session) -> Dict[str, int]:
        """Platform-wide numbers shown on every user's dashboard."""
        total_polls = self.poll_crud.count(db)
        total_votes = self.vote_crud.count(db)
        return {
            "total_polls": total_polls,
            "active_polls": self.poll_crud.count(db, active_only=True),
            "total_votes": total_votes,
            "avg_participation": round(total_votes / total_polls) if total_polls else 0
        }

    def get_poll_analytics(self, db: Session, poll_id: UUID) -> Optional[Dict[str, Any]]:
        """Per-option breakdown for a single poll."""
        poll = self.poll_crud.get_with_details(db, poll_id)
        if not poll:
            return None

        total_votes = poll.total_votes
        counts = poll.vote_counts()
        anonymous_votes = sum(1 for vote in poll.votes if vote.is_anonymous)
        unique_voters = {vote.voter_identifier for vote in poll.votes}

        return {
            "poll_id": str(poll.id),
            "title": poll.title,
            "total_votes": total_votes,
            "unique_voters": len(unique_voters),
            "anonymous_votes": anonymous_votes,
            "authenticated_votes": total_votes - anonymous_votes,
            "emails_sent": email_notification_crud.count(db, poll.id),
            "options": [
                option.to_dict(vote_count=counts.get(option.id, 0), total_votes=total_votes)
                for option in poll.options
            ]
        }


analytics_service = AnalyticsService()
