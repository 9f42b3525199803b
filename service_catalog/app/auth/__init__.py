"""
Authentication helpers for the catalog service.
"""

from .manager import AuthManager, LoginRequest, RegisterRequest
from .middleware import Authenticator, extract_token, require_role
from .passwords import hash_password, verify_password
from .tokens import TokenService

__all__ = [
    "AuthManager",
    "Authenticator",
    "LoginRequest",
    "RegisterRequest",
    "TokenService",
    "extract_token",
    "hash_password",
    "require_role",
    "verify_password",
]
