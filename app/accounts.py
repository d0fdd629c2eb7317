"""User registration and login."""

from __future__ import annotations

import logging
import re
from typing import Tuple

from .errors import ConflictError, UnauthenticatedError, ValidationError
from .models import User
from .security import TokenService
from .stores import IdentityStore

logger = logging.getLogger("taskmanager.accounts")

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def normalize_email(email: str) -> str:
    normalized = email.strip().lower()
    if not _EMAIL_PATTERN.match(normalized):
        raise ValidationError("Please provide a valid email address")
    return normalized


class AccountService:
    def __init__(self, users: IdentityStore, tokens: TokenService) -> None:
        self._users = users
        self._tokens = tokens

    def register(self, username: str, email: str, password: str) -> Tuple[User, str]:
        """Create an account and return it with a freshly issued token."""

        cleaned_username = username.strip()
        if len(cleaned_username) < MIN_USERNAME_LENGTH:
            raise ValidationError("Username must be at least 3 characters long")
        normalized_email = normalize_email(email)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password must be at least 6 characters long")

        if self._users.get_user_by_email(normalized_email) is not None:
            raise ConflictError("User already exists")

        user = self._users.create_user(cleaned_username, normalized_email, password)
        logger.info("Registered user %s <%s>", user.id, user.email)
        return user, self._tokens.issue(user.id)

    def login(self, email: str, password: str) -> Tuple[User, str]:
        user = self._users.authenticate_user(email.strip().lower(), password)
        if user is None:
            logger.warning("Failed login attempt for %s", email.strip().lower())
            raise UnauthenticatedError("Invalid email or password")
        return user, self._tokens.issue(user.id)


__all__ = ["AccountService", "normalize_email"]
