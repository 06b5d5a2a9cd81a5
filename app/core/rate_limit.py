from typing import Optional
import logging

from app.core import redis_client
from app.core.config import settings
from app.core.security import rate_limit_key
from app.utils.exceptions import RateLimitError
from app.utils.logger import security_logger

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Fixed-window counter backed by Redis.

    When Redis is disabled or unreachable every check passes; the
    database constraints still prevent duplicate ballots.
    """

    def __init__(self, action: str, limit: int, window: int):
        self.action = action
        self.limit = limit
        self.window = window

    async def hit(self, identifier: str, limit: Optional[int] = None,
                  window: Optional[int] = None) -> Optional[int]:
        """
        Count one attempt for ``identifier`` and raise once the limit is passed.

        Args:
            identifier: Profile id, IP address or email being limited
            limit: Override for the configured limit
            window: Override for the configured window in seconds

        Returns:
            Optional[int]: Attempts in the current window, None without Redis

        Raises:
            RateLimitError: If the attempt exceeds the limit
        """
        limit = limit or self.limit
        window = window or self.window
        key = rate_limit_key(identifier, self.action)

        count = await redis_client.increment_counter(key, expire=window)
        if count is not None and count > limit:
            retry_after = await redis_client.get_ttl(key)
            security_logger.log_rate_limit_exceeded(identifier, self.action)
            raise RateLimitError(
                message=f"Too many {self.action} attempts. Please try again later.",
                retry_after=retry_after if retry_after and retry_after > 0 else window
            )
        return count

    async def is_limited(self, identifier: str, limit: Optional[int] = None) -> bool:
        """Check the counter without consuming an attempt."""
        count = await redis_client.get_counter(rate_limit_key(identifier, self.action))
        return count is not None and count >= (limit or self.limit)

    async def reset(self, identifier: str) -> None:
        await redis_client.delete_key(rate_limit_key(identifier, self.action))


vote_rate_limiter = RateLimiter("vote", settings.vote_rate_limit, settings.vote_rate_window)
# Limit and window come from the security settings at call time
login_attempt_limiter = RateLimiter("login", 5, 15 * 60)
