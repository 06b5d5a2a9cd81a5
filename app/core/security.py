from datetime import datetime, timedelta, timezone
from typing import Optional, List
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Request
import re
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE
)
IPV4_PATTERN = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
IPV6_PATTERN = re.compile(r"^([0-9a-fA-F]{1,4}:){7}[0-9a-fA-F]{1,4}$")

FALLBACK_IP = "127.0.0.1"
USER_AGENT_MAX_LENGTH = 200

COMMON_PASSWORDS = {"password", "12345678", "qwerty123", "password123"}

DISPOSABLE_EMAIL_DOMAINS = {
    "10minutemail.com",
    "guerrillamail.com",
    "mailinator.com",
    "tempmail.com",
    "throwawaymail.com",
    "yopmail.com",
}


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against its hash.

    Args:
        plain_password: The plain text password
        hashed_password: The hashed password

    Returns:
        bool: True if password matches, False otherwise
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: The data to encode in the token
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str) -> Optional[dict]:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token to verify

    Returns:
        Optional[dict]: The decoded token data or None if invalid
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        return None


def sanitize_input(text: Optional[str], max_length: int = 1000) -> str:
    """
    Sanitize user input to prevent XSS and other attacks.

    Args:
        text: The text to sanitize
        max_length: Maximum length allowed

    Returns:
        str: The sanitized text
    """
    if not text:
        return ""

    sanitized = text
    for char in ['<', '>', '"', "'", '&', '\x00']:
        sanitized = sanitized.replace(char, '')

    return sanitized.strip()[:max_length]


def sanitize_user_agent(user_agent: Optional[str]) -> str:
    """Strip markup characters from a User-Agent header and cap its length."""
    if not user_agent:
        return "unknown"
    return re.sub(r"[<>\"'&]", "", user_agent)[:USER_AGENT_MAX_LENGTH]


def is_valid_uuid(value) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


def is_valid_ip(value: Optional[str]) -> bool:
    if not value:
        return False
    return bool(IPV4_PATTERN.match(value) or IPV6_PATTERN.match(value))


def extract_client_ip(request: Request) -> str:
    """
    Resolve the voter's IP address from proxy headers.

    The first entry of X-Forwarded-For wins, then X-Real-IP, then the
    socket peer. Anything that is not a plain IPv4 or full IPv6 address
    collapses to 127.0.0.1 so header junk never reaches the votes table.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    candidate = None
    if forwarded_for:
        candidate = forwarded_for.split(",")[0].strip()
    if not candidate:
        candidate = (request.headers.get("x-real-ip") or "").strip()
    if not candidate and request.client:
        candidate = request.client.host

    return candidate if is_valid_ip(candidate) else FALLBACK_IP


def validate_password_strength(password: str, min_length: int = 8,
                               require_complexity: bool = True) -> List[str]:
    """
    Check a new password against the configured policy.

    Returns:
        List[str]: Human readable problems, empty when the password is acceptable
    """
    problems = []
    if len(password) < min_length:
        problems.append(f"Password must be at least {min_length} characters long")
    if require_complexity:
        if not re.search(r"[A-Z]", password):
            problems.append("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", password):
            problems.append("Password must contain at least one lowercase letter")
        if not re.search(r"\d", password):
            problems.append("Password must contain at least one number")
    if password.lower() in COMMON_PASSWORDS:
        problems.append("Password is too common")
    return problems


def rate_limit_key(identifier: str, action: str) -> str:
    """
    Generate a rate limiting key.

    Args:
        identifier: User or IP identifier
        action: The action being rate limited

    Returns:
        str: The rate limiting key
    """
    return f"rate_limit:{action}:{identifier}"
