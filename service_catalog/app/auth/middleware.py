"""
Request authentication and role guards.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Request

from shared.errors import AuthenticationError, AuthorizationError
from shared.logging import get_logger, set_user_context
from ..persistence.base import DocumentStore
from .tokens import TokenService


USERS = "users"
PUBLIC_USER_FIELDS = ("_id", "username", "email", "name", "role")


def extract_token(request: Request) -> Optional[str]:
    """Read a token from ``Authorization: Bearer`` or ``X-Access-Token``."""
    authorization = request.headers.get("authorization")
    if authorization:
        parts = authorization.split(" ")
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip() or None

    access_token = request.headers.get("x-access-token")
    if access_token:
        return access_token.strip() or None
    return None


class Authenticator:
    """Resolves the user behind a request's session token."""

    def __init__(self, store: DocumentStore, tokens: TokenService):
        self.store = store
        self.tokens = tokens
        self.logger = get_logger("catalog.auth")

    async def authenticate(self, request: Request) -> Dict[str, Any]:
        """Return the request's user or raise AuthenticationError."""
        token = extract_token(request)
        if not token:
            raise AuthenticationError("Authorization token missing")

        claims = self.tokens.verify(token)
        user_id = claims.get("id")
        if not user_id:
            raise AuthenticationError("Invalid token payload")

        user = await self.store.find_one(USERS, {"_id": user_id})
        if not user:
            raise AuthenticationError("User not found for this token")

        public = {field: user.get(field) for field in PUBLIC_USER_FIELDS}
        request.state.user = public
        set_user_context(public["_id"])
        return public

    async def optional(self, request: Request) -> Optional[Dict[str, Any]]:
        """Like ``authenticate`` but returns None for anonymous or bad tokens."""
        if not extract_token(request):
            return None
        try:
            return await self.authenticate(request)
        except AuthenticationError as e:
            self.logger.debug("Ignoring unusable session token", reason=e.message)
            return None


def require_role(authenticator: Authenticator, *roles: str) -> Callable[[Request], Awaitable[Dict[str, Any]]]:
    """FastAPI dependency admitting only users holding one of ``roles``."""

    async def role_guard(request: Request) -> Dict[str, Any]:
        user = getattr(request.state, "user", None) or await authenticator.authenticate(request)
        if not user or not user.get("role"):
            raise AuthenticationError("Authentication required")
        if user["role"] not in roles:
            raise AuthorizationError(
                "Forbidden: insufficient role",
                details={"required": list(roles), "role": user["role"]}
            )
        return user

    return role_guard
