# backend/modules/menu_sync/schemas/__init__.py

"""
Master menu synchronization schemas.
"""

from .menu_sync_schemas import (
    ITEM_DIFF_FIELDS,
    SnapshotItem,
    SnapshotCategory,
    MenuSnapshot,
    ItemModification,
    StructuralDiff,
    PendingChanges,
    VersionDiffResponse,
    ConflictDetail,
    SyncStats,
    SyncResult,
    BranchSyncDetail,
    BulkSyncResult,
    InitializeBranchSyncRequest,
    SyncRequest,
    SyncModeUpdate,
    ItemOverrideRequest,
    BranchSyncLinkResponse,
    SyncStatusResponse,
    ItemOverrideResponse,
    SyncLogResponse,
    MenuVersionInfo,
    VersionSnapshotResponse,
    DashboardMasterMenu,
    DashboardBranchCounts,
    SyncDashboardItem,
    MenuItemInput,
    MenuItemUpdate,
    CategoryInput,
    MasterMenuCreate,
)

__all__ = [
    "ITEM_DIFF_FIELDS",
    "SnapshotItem",
    "SnapshotCategory",
    "MenuSnapshot",
    "ItemModification",
    "StructuralDiff",
    "PendingChanges",
    "VersionDiffResponse",
    "ConflictDetail",
    "SyncStats",
    "SyncResult",
    "BranchSyncDetail",
    "BulkSyncResult",
    "InitializeBranchSyncRequest",
    "SyncRequest",
    "SyncModeUpdate",
    "ItemOverrideRequest",
    "BranchSyncLinkResponse",
    "SyncStatusResponse",
    "ItemOverrideResponse",
    "SyncLogResponse",
    "MenuVersionInfo",
    "VersionSnapshotResponse",
    "DashboardMasterMenu",
    "DashboardBranchCounts",
    "SyncDashboardItem",
    "MenuItemInput",
    "MenuItemUpdate",
    "CategoryInput",
    "MasterMenuCreate",
]
