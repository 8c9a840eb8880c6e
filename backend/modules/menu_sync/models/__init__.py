# backend/modules/menu_sync/models/__init__.py

"""
Master menu synchronization models.
"""

from .menu_sync_models import (
    MasterMenu,
    MenuVersion,
    BranchSyncLink,
    ItemOverride,
    SyncLog,
    BranchMenuCategory,
    BranchMenuItem,
    SyncMode,
    VersionChangeType,
    SyncTrigger,
)

__all__ = [
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
]
