"""
RoleGate - Persistence

Usage:
    from database import AccessStore
"""

from .access_store import AccessStore

__all__ = ["AccessStore"]
