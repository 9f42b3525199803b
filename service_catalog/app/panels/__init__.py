"""
Sub-admin panel accounts.
"""

from .manager import PanelManager
from .models import PanelCreateRequest, PanelPasswordRequest, PanelUpdateRequest

__all__ = [
    "PanelCreateRequest",
    "PanelManager",
    "PanelPasswordRequest",
    "PanelUpdateRequest",
]
