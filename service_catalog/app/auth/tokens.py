"""
JWT issuance and verification for admin sessions.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

from jose import ExpiredSignatureError, JWTError, jwt

from shared.errors import AuthenticationError


class TokenService:
    """Issues and verifies HS256 session tokens carrying ``{"id": user_id}``."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_minutes: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.expires_minutes = expires_minutes
        self.clock = clock

    def issue(self, user_id: str) -> str:
        issued_at = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
        claims = {
            "id": user_id,
            "iat": issued_at,
            "exp": issued_at + timedelta(minutes=self.expires_minutes),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """Return the token claims or raise AuthenticationError."""
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise AuthenticationError("Token expired") from exc
        except JWTError as exc:
            raise AuthenticationError("Invalid token", details={"error": str(exc)}) from exc
