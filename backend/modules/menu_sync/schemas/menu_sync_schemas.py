# backend/modules/menu_sync/schemas/menu_sync_schemas.py

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime

from ..models.menu_sync_models import SyncMode, VersionChangeType, SyncTrigger


# Item fields compared by the diff engine, in reporting order
ITEM_DIFF_FIELDS: Tuple[str, ...] = (
    "name",
    "price",
    "description",
    "image_url",
    "is_available",
    "category_id",
)


# Snapshot tree
class SnapshotItem(BaseModel):
    id: int
    name: str
    price: float = 0.0
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_available: bool = True


class SnapshotCategory(BaseModel):
    id: int
    name: str
    items: List[SnapshotItem] = Field(default_factory=list)


class MenuSnapshot(BaseModel):
    """Materialized category -> item tree of a master menu version"""

    version: int = 0
    categories: List[SnapshotCategory] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_unique_ids(self):
        category_ids = [c.id for c in self.categories]
        if len(category_ids) != len(set(category_ids)):
            raise ValueError("Duplicate category id in snapshot")
        item_ids = [i.id for c in self.categories for i in c.items]
        if len(item_ids) != len(set(item_ids)):
            raise ValueError("Duplicate item id in snapshot")
        return self

    def items_by_id(self) -> Dict[int, Dict[str, Any]]:
        """Flatten the tree into ``{item_id: item fields + category_id}``"""
        flat = {}
        for category in self.categories:
            for item in category.items:
                flat[item.id] = {**item.model_dump(), "category_id": category.id}
        return flat

    def categories_by_id(self) -> Dict[int, Dict[str, Any]]:
        return {c.id: {"id": c.id, "name": c.name} for c in self.categories}

    def find_category(self, category_id: int) -> Optional[SnapshotCategory]:
        return next((c for c in self.categories if c.id == category_id), None)

    def find_item(self, item_id: int) -> Optional[SnapshotItem]:
        for category in self.categories:
            for item in category.items:
                if item.id == item_id:
                    return item
        return None


# Diffs
class ItemModification(BaseModel):
    item: Dict[str, Any]
    changes: Dict[str, Dict[str, Any]]


class StructuralDiff(BaseModel):
    items_added: List[Dict[str, Any]] = Field(default_factory=list)
    items_removed: List[Dict[str, Any]] = Field(default_factory=list)
    items_modified: List[ItemModification] = Field(default_factory=list)
    categories_added: List[Dict[str, Any]] = Field(default_factory=list)
    categories_removed: List[Dict[str, Any]] = Field(default_factory=list)
    categories_modified: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.items_added
            or self.items_removed
            or self.items_modified
            or self.categories_added
            or self.categories_removed
            or self.categories_modified
        )


class PendingChanges(BaseModel):
    branch_sync_id: int
    from_version: int
    to_version: int
    added_items: List[int] = Field(default_factory=list)
    removed_items: List[int] = Field(default_factory=list)
    updated_items: Dict[int, Dict[str, Dict[str, Any]]] = Field(default_factory=dict)
    price_changes: Dict[int, Dict[str, Any]] = Field(default_factory=dict)


class VersionDiffResponse(BaseModel):
    master_menu_id: int
    from_version: int
    to_version: int
    diff: StructuralDiff
    from_snapshot: MenuSnapshot
    to_snapshot: MenuSnapshot


# Sync results
class ConflictDetail(BaseModel):
    item_id: int
    field: str
    locked_value: Any = None
    incoming_value: Any = None


class SyncStats(BaseModel):
    added: int = 0
    updated: int = 0
    removed: int = 0
    conflicts: int = 0
    conflict_details: List[ConflictDetail] = Field(default_factory=list)

    def record_conflict(self, item_id: int, field: str, locked_value: Any, incoming_value: Any):
        self.conflict_details.append(
            ConflictDetail(
                item_id=item_id,
                field=field,
                locked_value=locked_value,
                incoming_value=incoming_value,
            )
        )
        self.conflicts = len(self.conflict_details)


class SyncResult(BaseModel):
    success: bool
    message: str
    branch_sync_id: int
    from_version: int
    to_version: int
    stats: SyncStats = Field(default_factory=SyncStats)


class BranchSyncDetail(BaseModel):
    branch_sync_id: int
    location_id: int
    status: str  # success, failed, cancelled
    from_version: Optional[int] = None
    to_version: Optional[int] = None
    stats: Optional[SyncStats] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class BulkSyncResult(BaseModel):
    master_menu_id: int
    target_version: int
    total: int = 0
    successful: int = 0
    failed: int = 0
    cancelled: int = 0
    details: List[BranchSyncDetail] = Field(default_factory=list)


# Requests
class InitializeBranchSyncRequest(BaseModel):
    location_id: int
    menu_id: int
    master_menu_id: int
    sync_mode: SyncMode = SyncMode.MANUAL


class SyncRequest(BaseModel):
    target_version: Optional[int] = Field(None, ge=0)


class SyncModeUpdate(BaseModel):
    # Validated by the controller so unknown modes surface as a menu sync ValidationError
    sync_mode: str


class ItemOverrideRequest(BaseModel):
    price_override: Optional[float] = None
    availability_override: Optional[bool] = None
    price_locked: Optional[bool] = None
    availability_locked: Optional[bool] = None
    fully_locked: Optional[bool] = None
    override_reason: Optional[str] = Field(
        None, validation_alias=AliasChoices("override_reason", "notes")
    )


# Responses
class BranchSyncLinkResponse(BaseModel):
    id: int
    location_id: int
    menu_id: int
    master_menu_id: int
    synced_version: int
    sync_mode: SyncMode
    pending_versions: int
    last_synced_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SyncStatusResponse(BaseModel):
    branch_sync_id: int
    synced: bool
    synced_version: int
    current_version: int
    pending_versions: int
    sync_mode: SyncMode
    has_pending_updates: bool
    last_synced_at: Optional[datetime] = None


class ItemOverrideResponse(BaseModel):
    id: int
    branch_sync_id: int
    master_menu_item_id: int
    price_override: Optional[float] = None
    availability_override: Optional[bool] = None
    price_locked: bool
    availability_locked: bool
    fully_locked: bool
    override_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SyncLogResponse(BaseModel):
    id: int
    branch_sync_id: int
    from_version: int
    to_version: int
    stats: Dict[str, Any]
    triggered_by: SyncTrigger
    triggered_by_id: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MenuVersionInfo(BaseModel):
    version_number: int
    change_type: VersionChangeType
    change_summary: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class VersionSnapshotResponse(MenuVersionInfo):
    changes_data: Optional[Dict[str, Any]] = None
    snapshot: MenuSnapshot


class DashboardMasterMenu(BaseModel):
    id: int
    name: str
    current_version: int


class DashboardBranchCounts(BaseModel):
    total: int = 0
    synced: int = 0
    pending: int = 0
    auto_sync_enabled: int = 0


class SyncDashboardItem(BaseModel):
    master_menu: DashboardMasterMenu
    branches: DashboardBranchCounts


# Master menu edits
class MenuItemInput(BaseModel):
    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=200)
    price: float = Field(0.0, ge=0)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_available: bool = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_available: Optional[bool] = None
    category_id: Optional[int] = None


class CategoryInput(BaseModel):
    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=200)
    items: List[MenuItemInput] = Field(default_factory=list)


class MasterMenuCreate(BaseModel):
    franchise_id: int
    name: str = Field(..., min_length=1, max_length=200)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    is_default: bool = False
    categories: List[CategoryInput] = Field(default_factory=list)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper() if v else v
