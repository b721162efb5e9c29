"""Intune Backup - Graph Module"""

from .session import REQUIRED_SCOPES, GraphSession

__all__ = ["REQUIRED_SCOPES", "GraphSession"]
