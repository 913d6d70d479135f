"""
Identity Provider

Issues and verifies the signed token that binds a request to a username.
The rest of the core only ever sees the verified username.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt

from app.core.errors import AuthorizationError

logger = logging.getLogger(__name__)


class IdentityProvider:
    """HS256 JWT issuer / verifier with a fixed set of known users."""

    def __init__(
        self,
        secret: str,
        allowed_users: Iterable[str],
        algorithm: str = "HS256",
        ttl_seconds: int = 3600,
    ) -> None:
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self.allowed_users = set(allowed_users)

    @classmethod
    def from_settings(cls, settings) -> "IdentityProvider":
        return cls(
            secret=settings.JWT_SECRET,
            allowed_users=settings.allowed_users,
            algorithm=settings.JWT_ALGORITHM,
            ttl_seconds=settings.TOKEN_TTL_SECONDS,
        )

    def is_known(self, username: str) -> bool:
        return username in self.allowed_users

    def issue(self, username: str) -> str:
        """Sign a token for a known user.

        Raises:
            AuthorizationError: The username is not a known user.
        """
        if not self.is_known(username):
            raise AuthorizationError("Invalid credentials")
        now = datetime.now(timezone.utc)
        payload = {
            "username": username,
            "iat": now,
            "exp": now + timedelta(seconds=self.ttl_seconds),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    async def resolve(self, token: Optional[str]) -> str:
        """Return the username bound to a token.

        Raises:
            AuthorizationError: The token is missing, expired, tampered with,
                or carries no username.
        """
        if not token:
            raise AuthorizationError("Missing identity token")
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise AuthorizationError("Identity token expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected identity token: %s", exc)
            raise AuthorizationError("Invalid identity token") from exc

        username = payload.get("username")
        if not isinstance(username, str) or not username:
            raise AuthorizationError("Identity token has no username")
        return username


def token_from_request(
    cookie_token: Optional[str], authorization: Optional[str]
) -> Optional[str]:
    """Pick the identity token from the ``token`` cookie or a Bearer header."""
    if cookie_token:
        return cookie_token
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    return None
