"""
Admin account registration and login.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from shared.errors import AuthenticationError, CatalogError, ValidationError
from shared.logging import get_logger
from ..persistence.base import DocumentStore
from .middleware import USERS
from .passwords import hash_password, verify_password
from .tokens import TokenService


ROLES = ("admin", "editor", "user")
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


class RegisterRequest(BaseModel):
    """Registration request."""
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    """Login request."""
    username: Optional[str] = None
    password: Optional[str] = None


class AuthManager:
    """Creates accounts and exchanges credentials for session tokens."""

    def __init__(self, store: DocumentStore, tokens: TokenService):
        self.store = store
        self.tokens = tokens
        self.logger = get_logger("catalog.auth.manager")

    def _session(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "_id": user["_id"],
            "username": user["username"],
            "role": user["role"],
            "token": self.tokens.issue(user["_id"]),
        }

    async def register(self, request: RegisterRequest) -> Dict[str, Any]:
        username = (request.username or "").strip()
        password = request.password or ""
        role = request.role or "admin"

        if len(username) < MIN_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if role not in ROLES:
            raise ValidationError("Invalid role", details={"allowed": list(ROLES)})

        if await self.store.find_one(USERS, {"username": username}):
            raise CatalogError("USER_EXISTS", "User already exists", status_code=400)

        user = await self.store.insert_one(USERS, {
            "username": username,
            "password": hash_password(password),
            "role": role,
        })

        self.logger.info("User registered", user_id=user["_id"], role=role)
        return self._session(user)

    async def login(self, request: LoginRequest) -> Dict[str, Any]:
        username = (request.username or "").strip()
        user = await self.store.find_one(USERS, {"username": username}) if username else None

        if not user or not verify_password(request.password or "", user.get("password", "")):
            self.logger.warning("Login failed", username=username)
            raise AuthenticationError("Invalid username or password")

        self.logger.info("User logged in", user_id=user["_id"])
        return self._session(user)
