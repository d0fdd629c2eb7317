"""Bearer token issuance and request authentication for the task API."""
from __future__ import annotations

import base64
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import UnauthenticatedError
from .models import User
from .stores import IdentityStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issue and verify signed, expiring tokens that carry a user id.

    Tokens are Fernet tokens keyed from the configured secret. The issue time
    is embedded by Fernet itself, so expiry is enforced on verification without
    any server-side session state.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl: timedelta = timedelta(days=30),
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if not secret:
            raise ValueError("A token secret must be configured")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))
        self._ttl = ttl
        self._now = now or _utcnow

    def issue(self, user_id: str) -> str:
        token = self._fernet.encrypt_at_time(user_id.encode("utf-8"), int(self._now().timestamp()))
        return token.decode("ascii")

    def verify(self, token: str) -> str:
        """Return the user id carried by ``token``.

        Raises :class:`UnauthenticatedError` when the token is malformed, was
        signed with another secret, or has expired.
        """

        try:
            payload = self._fernet.decrypt_at_time(
                token.encode("ascii"),
                int(self._ttl.total_seconds()),
                int(self._now().timestamp()),
            )
            return payload.decode("utf-8")
        except (InvalidToken, UnicodeError) as exc:
            raise UnauthenticatedError("Not authorized, token failed") from exc


class BearerAuth:
    """Resolve ``Authorization: Bearer`` credentials to a stored user."""

    def __init__(self, tokens: TokenService, users: IdentityStore) -> None:
        self._tokens = tokens
        self._users = users
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> User:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise UnauthenticatedError("Not authorized, no token")

        user_id = self._tokens.verify(credentials.credentials)
        user = await run_in_threadpool(self._users.get_user, user_id)
        if user is None:
            raise UnauthenticatedError("Not authorized, user not found")

        request.state.user = user
        return user


__all__ = ["BearerAuth", "TokenService"]
