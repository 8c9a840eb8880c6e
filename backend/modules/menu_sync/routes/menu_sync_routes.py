# backend/modules/menu_sync/routes/menu_sync_routes.py

"""
API routes for master menu synchronization.

Handlers are thin: each one maps onto a single service call and wraps the
result in the standard response envelope. Menu sync exceptions are rendered
by the shared API error handler.
"""

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session
from typing import Callable, List, Optional
import logging

from core.database import get_db, get_session_factory
from core.response_models import StandardResponse
from ..services.branch_sync_service import BranchSyncService
from ..services.diff_engine import DiffEngine
from ..services.override_store import OverrideStore
from ..services.sync_executor import SyncExecutor
from ..services.sync_mode_controller import SyncModeController
from ..services.version_store import VersionStore
from ..schemas.menu_sync_schemas import (
    BranchSyncLinkResponse,
    BulkSyncResult,
    InitializeBranchSyncRequest,
    ItemOverrideRequest,
    ItemOverrideResponse,
    MenuVersionInfo,
    PendingChanges,
    SyncDashboardItem,
    SyncLogResponse,
    SyncModeUpdate,
    SyncRequest,
    SyncResult,
    SyncStatusResponse,
    VersionDiffResponse,
    VersionSnapshotResponse,
)
from ..utils.pagination import normalize_page

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/menu-sync", tags=["Menu Sync"])


# ========== Versions ==========

@router.get("/versions/{master_menu_id}", response_model=StandardResponse[List[MenuVersionInfo]])
async def list_versions(
    master_menu_id: int,
    page: int = Query(1, ge=1),
    size: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """List master menu versions, newest first"""
    page, size = normalize_page(page, size)
    versions, total = VersionStore(db).list_versions(master_menu_id, page, size)
    return StandardResponse.paginated(
        data=[MenuVersionInfo.model_validate(v) for v in versions],
        page=page,
        per_page=size,
        total=total,
    )


@router.get(
    "/versions/{master_menu_id}/snapshot/{version_number}",
    response_model=StandardResponse[VersionSnapshotResponse],
)
async def get_version_snapshot(
    master_menu_id: int,
    version_number: int,
    db: Session = Depends(get_db),
):
    version = VersionStore(db).get_version(master_menu_id, version_number)
    return StandardResponse.success_response(data=VersionSnapshotResponse.model_validate(version))


@router.get(
    "/versions/{master_menu_id}/compare/{from_version}/{to_version}",
    response_model=StandardResponse[VersionDiffResponse],
)
async def compare_versions(
    master_menu_id: int,
    from_version: int,
    to_version: int,
    db: Session = Depends(get_db),
):
    """Structural diff between two versions of a master menu"""
    comparison = DiffEngine(db).compare(master_menu_id, from_version, to_version)
    return StandardResponse.success_response(data=comparison)


# ========== Branch links ==========

@router.post("/initialize", response_model=StandardResponse[BranchSyncLinkResponse], status_code=201)
async def initialize_branch_sync(
    request: InitializeBranchSyncRequest,
    db: Session = Depends(get_db),
):
    link = BranchSyncService(db).initialize_branch_sync(
        request.location_id, request.menu_id, request.master_menu_id, request.sync_mode
    )
    return StandardResponse.success_response(
        data=BranchSyncLinkResponse.model_validate(link),
        message=f"Location {link.location_id} linked to master menu {link.master_menu_id}",
    )


@router.get("/status/{location_id}/{master_menu_id}", response_model=StandardResponse[SyncStatusResponse])
async def get_sync_status(
    location_id: int,
    master_menu_id: int,
    db: Session = Depends(get_db),
):
    status = BranchSyncService(db).get_status(location_id, master_menu_id)
    return StandardResponse.success_response(data=status)


@router.get("/dashboard/{franchise_id}", response_model=StandardResponse[List[SyncDashboardItem]])
async def get_sync_dashboard(
    franchise_id: int,
    db: Session = Depends(get_db),
):
    """Branch sync counts for every master menu of a franchise"""
    return StandardResponse.success_response(data=BranchSyncService(db).get_dashboard(franchise_id))


# ========== Sync ==========

@router.post("/bulk/{master_menu_id}", response_model=StandardResponse[BulkSyncResult])
def bulk_sync(
    master_menu_id: int,
    db: Session = Depends(get_db),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """Sync every non-disabled branch of a master menu to its current version"""
    result = SyncExecutor(db, session_factory=session_factory).bulk_sync(master_menu_id)
    return StandardResponse.success_response(
        data=result,
        message=f"{result.successful} of {result.total} branches synced",
    )


@router.get("/{branch_sync_id}/pending", response_model=StandardResponse[PendingChanges])
async def get_pending_changes(
    branch_sync_id: int,
    db: Session = Depends(get_db),
):
    return StandardResponse.success_response(data=DiffEngine(db).pending_changes(branch_sync_id))


@router.post("/{branch_sync_id}/sync", response_model=StandardResponse[SyncResult])
def sync_branch(
    branch_sync_id: int,
    request: Optional[SyncRequest] = Body(None),
    db: Session = Depends(get_db),
):
    """Sync a branch to the requested version (default: latest)"""
    target_version = request.target_version if request else None
    result = SyncExecutor(db).sync(branch_sync_id, target_version)
    return StandardResponse.success_response(data=result, message=result.message)


@router.put("/{branch_sync_id}/mode", response_model=StandardResponse[BranchSyncLinkResponse])
async def update_sync_mode(
    branch_sync_id: int,
    update: SyncModeUpdate,
    db: Session = Depends(get_db),
):
    link = SyncModeController(db).set_mode(branch_sync_id, update.sync_mode)
    return StandardResponse.success_response(
        data=BranchSyncLinkResponse.model_validate(link),
        message=f"Sync mode set to {link.sync_mode.value}",
    )


@router.get("/{branch_sync_id}/history", response_model=StandardResponse[List[SyncLogResponse]])
async def get_sync_history(
    branch_sync_id: int,
    page: int = Query(1, ge=1),
    size: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    page, size = normalize_page(page, size)
    logs, total = BranchSyncService(db).get_history(branch_sync_id, page, size)
    return StandardResponse.paginated(
        data=[SyncLogResponse.model_validate(log) for log in logs],
        page=page,
        per_page=size,
        total=total,
    )


# ========== Overrides ==========

@router.get("/{branch_sync_id}/overrides", response_model=StandardResponse[List[ItemOverrideResponse]])
async def list_overrides(
    branch_sync_id: int,
    db: Session = Depends(get_db),
):
    overrides = OverrideStore(db).list_overrides(branch_sync_id)
    return StandardResponse.success_response(
        data=[ItemOverrideResponse.model_validate(o) for o in overrides]
    )


@router.post("/{branch_sync_id}/override/{item_id}", response_model=StandardResponse[ItemOverrideResponse])
async def set_item_override(
    branch_sync_id: int,
    item_id: int,
    request: ItemOverrideRequest,
    db: Session = Depends(get_db),
):
    """Create or update a branch override for a master menu item"""
    override = OverrideStore(db).set_override(branch_sync_id, item_id, request)
    return StandardResponse.success_response(
        data=ItemOverrideResponse.model_validate(override),
        message="Override saved",
    )


@router.delete("/{branch_sync_id}/override/{item_id}", response_model=StandardResponse[None])
async def remove_item_override(
    branch_sync_id: int,
    item_id: int,
    db: Session = Depends(get_db),
):
    OverrideStore(db).remove_override(branch_sync_id, item_id)
    return StandardResponse.success_response(message="Override removed")
