# backend/modules/menu_sync/routes/__init__.py

"""
Master menu synchronization routes.
"""

from .menu_sync_routes import router

__all__ = ["router"]
