"""
Catalog content management.
"""

from .manager import CatalogManager

__all__ = ["CatalogManager"]
