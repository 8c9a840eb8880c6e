# backend/modules/menu_sync/__init__.py

"""
Master menu synchronization and versioning for franchise branches.
"""

from .models import *
from .services import *
from .routes import router

__all__ = [
    # Models
    "MasterMenu",
    "MenuVersion",
    "BranchSyncLink",
    "ItemOverride",
    "SyncLog",
    "BranchMenuCategory",
    "BranchMenuItem",
    "SyncMode",
    "VersionChangeType",
    "SyncTrigger",
    # Services
    "VersionStore",
    "DiffEngine",
    "OverrideStore",
    "SyncExecutor",
    "SyncModeController",
    "BranchSyncService",
    "MasterMenuService",
    # Routes
    "router",
]
