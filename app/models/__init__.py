# Import all models to ensure they are registered with SQLAlchemy
from .profile import Profile
from .poll import Poll
from .option import PollOption
from .vote import Vote
from .app_setting import AppSetting
from .poll_interest import PollInterest
from .email_notification import EmailNotification

# Make models available for import
__all__ = ["Profile", "Poll", "PollOption", "Vote", "AppSetting", "PollInterest", "EmailNotification"]
