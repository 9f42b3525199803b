"""
Panel management: admin-only CRUD of sub-admin (editor) accounts.

A panel is a user with ``role == "editor"``; ``name`` holds the panel name
and ``username`` the login id. Emails are generated from the login id.
"""

from typing import Any, Dict, List

from shared.errors import ConflictError, NotFoundError, ServiceError, ValidationError
from shared.logging import get_logger
from ..auth.middleware import USERS
from ..auth.passwords import hash_password
from ..persistence.base import DESCENDING, Document, DocumentStore
from .models import PanelCreateRequest, PanelPasswordRequest, PanelUpdateRequest


PANEL_ROLE = "editor"
EMAIL_DOMAIN = "panel.local"
MAX_EMAIL_ATTEMPTS = 1000
MIN_PANEL_PASSWORD_LENGTH = 4

PANEL_FIELDS = ("_id", "username", "email", "name", "role", "createdAt", "updatedAt")


def _public(user: Document) -> Dict[str, Any]:
    return {field: user.get(field) for field in PANEL_FIELDS}


class PanelManager:
    """Sub-admin account operations."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.logger = get_logger("catalog.panels")

    async def _get_panel(self, panel_id: str) -> Document:
        user = await self.store.find_one(USERS, {"_id": panel_id})
        if not user or user.get("role") != PANEL_ROLE:
            raise NotFoundError("Panel not found", details={"id": panel_id})
        return user

    async def _unique_email(self, login_id: str) -> str:
        """``<loginid>@panel.local``, then ``+1``, ``+2``... until unused."""
        local = login_id.strip().lower()
        candidate = f"{local}@{EMAIL_DOMAIN}"
        counter = 1
        while await self.store.find_one(USERS, {"email": candidate}):
            if counter > MAX_EMAIL_ATTEMPTS:
                raise ServiceError("Failed to generate unique email for panel user")
            candidate = f"{local}+{counter}@{EMAIL_DOMAIN}"
            counter += 1
        return candidate

    async def list_panels(self) -> List[Dict[str, Any]]:
        users = await self.store.find(USERS, {"role": PANEL_ROLE}, sort=[("createdAt", DESCENDING)])
        return [_public(user) for user in users]

    async def create_panel(self, request: PanelCreateRequest) -> Dict[str, Any]:
        name = (request.panel_name or "").strip()
        username = (request.login_id or "").strip()
        if not name or not username or not request.password:
            raise ValidationError("panelName, loginId, and password are required")

        if await self.store.find_one(USERS, {"username": username}):
            raise ConflictError("loginId is already taken", details={"loginId": username})

        user = await self.store.insert_one(USERS, {
            "username": username,
            "password": hash_password(request.password),
            "email": await self._unique_email(username),
            "name": name,
            "role": PANEL_ROLE,
        })

        self.logger.info("Panel created", panel_id=user["_id"], username=username)
        return _public(user)

    async def update_panel(self, panel_id: str, request: PanelUpdateRequest) -> Dict[str, Any]:
        user = await self._get_panel(panel_id)
        values: Dict[str, Any] = {}

        if request.panel_name is not None:
            name = request.panel_name.strip()
            if not name:
                raise ValidationError("panelName cannot be empty")
            values["name"] = name

        if request.login_id is not None:
            username = request.login_id.strip()
            if not username:
                raise ValidationError("loginId cannot be empty")
            if username != user["username"]:
                conflict = await self.store.find_one(USERS, {"username": username, "_id": {"$ne": panel_id}})
                if conflict:
                    raise ConflictError("loginId is already taken", details={"loginId": username})
                values["username"] = username
                values["email"] = await self._unique_email(username)

        updated = await self.store.update_one(USERS, {"_id": panel_id}, values) if values else user

        self.logger.info("Panel updated", panel_id=panel_id, fields=sorted(values))
        return _public(updated)

    async def update_password(self, panel_id: str, request: PanelPasswordRequest) -> Dict[str, Any]:
        password = (request.password or "").strip()
        if len(password) < MIN_PANEL_PASSWORD_LENGTH:
            raise ValidationError(f"Password is required (min {MIN_PANEL_PASSWORD_LENGTH} chars)")

        await self._get_panel(panel_id)
        await self.store.update_one(USERS, {"_id": panel_id}, {"password": hash_password(password)})

        self.logger.info("Panel password updated", panel_id=panel_id)
        return {"ok": True, "message": "Password updated"}

    async def delete_panel(self, panel_id: str) -> Dict[str, Any]:
        await self._get_panel(panel_id)
        await self.store.delete_one(USERS, {"_id": panel_id})

        self.logger.info("Panel deleted", panel_id=panel_id)
        return {"ok": True, "message": "Panel deleted"}
