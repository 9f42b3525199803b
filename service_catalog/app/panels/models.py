"""
Panel (sub-admin) request models.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PanelCreateRequest(BaseModel):
    """Panel creation request."""
    model_config = ConfigDict(populate_by_name=True)

    panel_name: Optional[str] = Field(None, alias="panelName")
    login_id: Optional[str] = Field(None, alias="loginId")
    password: Optional[str] = None


class PanelUpdateRequest(BaseModel):
    """Panel info update. Omitted fields are left unchanged."""
    model_config = ConfigDict(populate_by_name=True)

    panel_name: Optional[str] = Field(None, alias="panelName")
    login_id: Optional[str] = Field(None, alias="loginId")


class PanelPasswordRequest(BaseModel):
    """Panel password update."""
    password: Optional[str] = None
