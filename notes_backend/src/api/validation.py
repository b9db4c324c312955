"""
Pre-condition checks run by the services before any persistence call.

Each check returns the normalised value or raises ValidationError.
"""

import re
from typing import Optional

from passlib.utils import MAX_PASSWORD_SIZE

from src.api.errors import ValidationError
from src.api.models import CONTENT_MAX_LENGTH, TITLE_MAX_LENGTH

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]{3,50}$")
EMAIL_MAX_LENGTH = 255
PASSWORD_MIN_LENGTH = 6


def check_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise ValidationError("Title must not be blank")
    title = title.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
    return title


def check_content(content: Optional[str]) -> str:
    if content is None:
        raise ValidationError("Content is required")
    if len(content) > CONTENT_MAX_LENGTH:
        raise ValidationError(f"Content must be at most {CONTENT_MAX_LENGTH} characters")
    return content


def check_username(username: Optional[str]) -> str:
    if username is None or not USERNAME_PATTERN.match(username):
        raise ValidationError(
            "Username must be 3-50 characters of letters, digits, '_', '.' or '-'"
        )
    return username


def check_email(email: Optional[str]) -> str:
    """Lowercase the address; it is the login handle and the token subject."""
    if email is None:
        raise ValidationError("Email is required")
    email = email.strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or not domain or "@" in domain or len(email) > EMAIL_MAX_LENGTH:
        raise ValidationError("Email address is invalid")
    return email


def check_password(password: Optional[str]) -> str:
    if password is None or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    # bcrypt cannot hash NUL bytes, and passlib refuses secrets above its size limit
    if "\x00" in password:
        raise ValidationError("Password must not contain NUL characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_SIZE:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_SIZE} bytes")
    return password
