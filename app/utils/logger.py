import logging
import sys
from typing import Optional, List
import structlog
from app.core.config import settings


def setup_logging(log_level: Optional[str] = None) -> None:
    """
    Setup application logging configuration.

    Args:
        log_level: Optional log level override
    """
    level = log_level or ("DEBUG" if settings.debug else "INFO")

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.environment == "production"
            else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)

    logger = structlog.get_logger("polling_app")
    logger.info("Logging configured", level=level, environment=settings.environment)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name

    Returns:
        structlog.stdlib.BoundLogger: Structured logger instance
    """
    return structlog.get_logger(name)


class RequestLogger:
    """Logger for HTTP requests."""

    def __init__(self):
        self.logger = get_logger("request")

    def log_request(self, method: str, path: str, status_code: int,
                    process_time: float, client_ip: Optional[str] = None):
        """
        Log HTTP request details.

        Args:
            method: HTTP method
            path: Request path
            status_code: Response status code
            process_time: Request processing time in seconds
            client_ip: Optional client IP
        """
        self.logger.info(
            "HTTP request",
            method=method,
            path=path,
            status_code=status_code,
            process_time=round(process_time, 4),
            client_ip=client_ip
        )


class VoteLogger:
    """Audit trail for ballots."""

    def __init__(self):
        self.logger = get_logger("vote")

    def log_vote_accepted(self, poll_id: str, option_ids: List[str], identity: str,
                          anonymous: bool, replaced: int = 0):
        self.logger.info(
            "Vote recorded",
            poll_id=poll_id,
            options=len(option_ids),
            identity=identity,
            anonymous=anonymous,
            replaced=replaced
        )

    def log_vote_rejected(self, poll_id: str, reason: str, identity: Optional[str] = None):
        self.logger.warning(
            "Vote rejected",
            poll_id=poll_id,
            reason=reason,
            identity=identity
        )


class SecurityLogger:
    """Logger for security events."""

    def __init__(self):
        self.logger = get_logger("security")

    def log_authentication_attempt(self, email: str, success: bool, ip_address: Optional[str] = None):
        """
        Log authentication attempt.

        Args:
            email: Email attempted
            success: Whether authentication was successful
            ip_address: Optional IP address
        """
        self.logger.info(
            "Authentication attempt",
            email=email,
            success=success,
            ip_address=ip_address
        )

    def log_rate_limit_exceeded(self, identifier: str, action: str, ip_address: Optional[str] = None):
        """
        Log rate limit exceeded.

        Args:
            identifier: User or IP identifier
            action: Action that was rate limited
            ip_address: Optional IP address
        """
        self.logger.warning(
            "Rate limit exceeded",
            identifier=identifier,
            action=action,
            ip_address=ip_address
        )

    def log_admin_action(self, admin_id: str, action: str, target: Optional[str] = None):
        """Log a moderation action taken from the admin dashboard."""
        self.logger.info(
            "Admin action",
            admin_id=admin_id,
            action=action,
            target=target
        )


request_logger = RequestLogger()
vote_logger = VoteLogger()
security_logger = SecurityLogger()
