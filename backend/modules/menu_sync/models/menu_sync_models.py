# backend/modules/menu_sync/models/menu_sync_models.py

"""
Master menu synchronization models.

A master menu owns an append-only chain of immutable snapshots (versions).
Branch locations link to a master menu, keep a local copy of its items and
may pin fields through item overrides. Every applied sync is recorded in the
sync log.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Boolean,
    Enum, Text, JSON, Float, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import enum

# Item fields an override can pin; category membership always follows the master
LOCKABLE_FIELDS = ("name", "price", "description", "image_url", "is_available")


class SyncMode(str, enum.Enum):
    """How a branch receives new master menu versions"""
    AUTO = "auto"
    MANUAL = "manual"
    DISABLED = "disabled"


class VersionChangeType(str, enum.Enum):
    """Kind of master edit that produced a version"""
    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    ITEM_MODIFIED = "item_modified"
    CATEGORY_ADDED = "category_added"
    CATEGORY_REMOVED = "category_removed"
    BULK = "bulk"


class SyncTrigger(str, enum.Enum):
    """Who started a sync"""
    USER = "user"
    AUTO = "auto"
    BULK = "bulk"


def _enum_column(enum_cls, **kwargs):
    return Column(
        Enum(enum_cls, values_callable=lambda obj: [e.value for e in obj], native_enum=False),
        **kwargs,
    )


class MasterMenu(Base):
    """Franchise-level canonical menu"""
    __tablename__ = "master_menus"

    id = Column(Integer, primary_key=True, index=True)
    franchise_id = Column(Integer, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    is_default = Column(Boolean, nullable=False, default=False)

    # Version chain head, 0 until the first version is created
    current_version = Column(Integer, nullable=False, default=0)

    # Id allocation counters, master ids are never reused
    last_category_id = Column(Integer, nullable=False, default=0)
    last_item_id = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    versions = relationship(
        "MenuVersion",
        back_populates="master_menu",
        order_by="MenuVersion.version_number",
    )
    branch_links = relationship("BranchSyncLink", back_populates="master_menu")

    def __repr__(self):
        return f"<MasterMenu(id={self.id}, name='{self.name}', current_version={self.current_version})>"


class MenuVersion(Base):
    """Immutable snapshot of a master menu at a point in time"""
    __tablename__ = "menu_versions"

    id = Column(Integer, primary_key=True, index=True)
    master_menu_id = Column(Integer, ForeignKey("master_menus.id"), nullable=False)
    version_number = Column(Integer, nullable=False)

    change_type = _enum_column(VersionChangeType, nullable=False)
    change_summary = Column(Text, nullable=True)

    # Full category -> item tree and the structural diff against the previous version
    snapshot = Column(JSON, nullable=False)
    changes_data = Column(JSON, nullable=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    # Relationships
    master_menu = relationship("MasterMenu", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("master_menu_id", "version_number", name="uq_menu_versions_menu_number"),
        Index("ix_menu_versions_menu_number", "master_menu_id", "version_number"),
    )

    def __repr__(self):
        return f"<MenuVersion(master_menu_id={self.master_menu_id}, version={self.version_number}, change_type='{self.change_type}')>"


class BranchSyncLink(Base):
    """Tracks which master menu version a branch has applied"""
    __tablename__ = "branch_sync_links"

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, nullable=False, index=True)
    menu_id = Column(Integer, nullable=False, index=True)  # Branch's local menu
    master_menu_id = Column(Integer, ForeignKey("master_menus.id"), nullable=False, index=True)

    # 0 means "never synced"
    synced_version = Column(Integer, nullable=False, default=0)
    sync_mode = _enum_column(SyncMode, nullable=False, default=SyncMode.MANUAL)
    last_synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    master_menu = relationship("MasterMenu", back_populates="branch_links")
    overrides = relationship(
        "ItemOverride", back_populates="branch_sync", cascade="all, delete-orphan"
    )
    sync_logs = relationship(
        "SyncLog", back_populates="branch_sync", order_by="SyncLog.id"
    )

    __table_args__ = (
        UniqueConstraint("location_id", "master_menu_id", name="uq_branch_sync_location_master"),
        Index("ix_branch_sync_master_mode", "master_menu_id", "sync_mode"),
    )

    @property
    def pending_versions(self) -> int:
        current = self.master_menu.current_version if self.master_menu else 0
        return max(current - (self.synced_version or 0), 0)

    def __repr__(self):
        return f"<BranchSyncLink(id={self.id}, location_id={self.location_id}, synced_version={self.synced_version}, mode='{self.sync_mode}')>"


class ItemOverride(Base):
    """Branch-specific deviation from a master menu item"""
    __tablename__ = "item_overrides"

    id = Column(Integer, primary_key=True, index=True)
    branch_sync_id = Column(Integer, ForeignKey("branch_sync_links.id"), nullable=False)
    master_menu_item_id = Column(Integer, nullable=False)

    price_override = Column(Float, nullable=True)
    availability_override = Column(Boolean, nullable=True)

    # Locked fields are never touched by an incoming sync
    price_locked = Column(Boolean, nullable=False, default=False)
    availability_locked = Column(Boolean, nullable=False, default=False)
    fully_locked = Column(Boolean, nullable=False, default=False)

    override_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    branch_sync = relationship("BranchSyncLink", back_populates="overrides")

    __table_args__ = (
        UniqueConstraint("branch_sync_id", "master_menu_item_id", name="uq_item_override_branch_item"),
    )

    def locks_field(self, field: str) -> bool:
        """Whether an incoming master change to ``field`` must be skipped"""
        if field not in LOCKABLE_FIELDS:
            return False
        if self.fully_locked:
            return True
        if field == "price":
            return bool(self.price_locked)
        if field == "is_available":
            return bool(self.availability_locked)
        return False

    def __repr__(self):
        return f"<ItemOverride(branch_sync_id={self.branch_sync_id}, item={self.master_menu_item_id})>"


class SyncLog(Base):
    """Write-once audit record of an applied sync"""
    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    branch_sync_id = Column(Integer, ForeignKey("branch_sync_links.id"), nullable=False)
    from_version = Column(Integer, nullable=False)
    to_version = Column(Integer, nullable=False)

    # added / updated / removed / conflicts / conflict_details
    stats = Column(JSON, nullable=False)

    triggered_by = _enum_column(SyncTrigger, nullable=False, default=SyncTrigger.USER)
    triggered_by_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    # Relationships
    branch_sync = relationship("BranchSyncLink", back_populates="sync_logs")

    __table_args__ = (
        Index("ix_sync_logs_branch_created", "branch_sync_id", "created_at"),
    )

    def __repr__(self):
        return f"<SyncLog(branch_sync_id={self.branch_sync_id}, {self.from_version}->{self.to_version})>"


class BranchMenuCategory(Base):
    """Category in a branch's local copy of the master menu"""
    __tablename__ = "branch_menu_categories"

    id = Column(Integer, primary_key=True, index=True)
    menu_id = Column(Integer, nullable=False, index=True)
    # Local menus can hold several master menus whose ids overlap
    master_menu_id = Column(Integer, ForeignKey("master_menus.id"), nullable=False)
    master_category_id = Column(Integer, nullable=False)
    name = Column(String(200), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "menu_id", "master_menu_id", "master_category_id", name="uq_branch_category_menu_master"
        ),
    )


class BranchMenuItem(Base):
    """Item in a branch's local copy of the master menu"""
    __tablename__ = "branch_menu_items"

    id = Column(Integer, primary_key=True, index=True)
    menu_id = Column(Integer, nullable=False, index=True)
    master_menu_id = Column(Integer, ForeignKey("master_menus.id"), nullable=False)
    master_menu_item_id = Column(Integer, nullable=False)
    master_category_id = Column(Integer, nullable=True)

    name = Column(String(200), nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "menu_id", "master_menu_id", "master_menu_item_id", name="uq_branch_item_menu_master"
        ),
    )

    def __repr__(self):
        return f"<BranchMenuItem(menu_id={self.menu_id}, item={self.master_menu_item_id}, price={self.price})>"
