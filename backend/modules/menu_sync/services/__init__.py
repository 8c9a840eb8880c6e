# backend/modules/menu_sync/services/__init__.py

from .diff_engine import DiffEngine, diff_snapshots
from .version_store import VersionStore
from .override_store import OverrideStore
from .sync_executor import SyncExecutor
from .sync_mode_controller import (
    SyncModeController,
    coerce_sync_mode,
    shutdown_auto_sync_pool,
)
from .branch_sync_service import BranchSyncService
from .master_menu_service import MasterMenuService

__all__ = [
    "DiffEngine",
    "diff_snapshots",
    "VersionStore",
    "OverrideStore",
    "SyncExecutor",
    "SyncModeController",
    "coerce_sync_mode",
    "shutdown_auto_sync_pool",
    "BranchSyncService",
    "MasterMenuService",
]
