"""
Restore Gateway - HTTP boundary for lifecycle, termination and audit operations.
"""

from .app import create_app
from .dependencies import get_current_actor, require_role

__all__ = ["create_app", "get_current_actor", "require_role"]
