# backend/modules/menu_sync/services/sync_executor.py

"""
Applies master menu versions to branch menus.

A sync merges the diff between the branch's synced version and the target
version into the branch's local items, skipping fields pinned by overrides.
Each sync is one transaction: either the branch items, the link's
``synced_version`` and the sync log entry are all written, or none are.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..models.menu_sync_models import (
    BranchSyncLink,
    BranchMenuCategory,
    BranchMenuItem,
    ItemOverride,
    MasterMenu,
    SyncLog,
    SyncMode,
    SyncTrigger,
)
from ..schemas.menu_sync_schemas import (
    ITEM_DIFF_FIELDS,
    BranchSyncDetail,
    BulkSyncResult,
    StructuralDiff,
    SyncResult,
    SyncStats,
)
from ..exceptions.menu_sync_exceptions import (
    MenuSyncException,
    NotFoundError,
    InvalidTargetError,
    SyncInProgressError,
    SyncFailedError,
    ValidationError,
)
from ..config.menu_sync_config import MenuSyncConfig, menu_sync_config
from ..utils.locks import branch_sync_locks, LockTimeout
from .diff_engine import diff_snapshots
from .override_store import OverrideStore
from .version_store import VersionStore

logger = logging.getLogger(__name__)

# Snapshot field -> BranchMenuItem column
ITEM_COLUMNS = {field: field for field in ITEM_DIFF_FIELDS}
ITEM_COLUMNS["category_id"] = "master_category_id"


def _coerce_trigger(triggered_by: Union[SyncTrigger, str]) -> SyncTrigger:
    try:
        return SyncTrigger(triggered_by)
    except ValueError:
        raise ValidationError(f"Unknown sync trigger: {triggered_by}", field="triggered_by")


class SyncExecutor:
    """Single-branch and bulk sync"""

    def __init__(
        self,
        db: Session,
        session_factory: Optional[Callable[[], Session]] = None,
        config: Optional[MenuSyncConfig] = None,
    ):
        self.db = db
        self.session_factory = session_factory
        self.config = config or menu_sync_config
        self.version_store = VersionStore(db, self.config)
        self.override_store = OverrideStore(db)

    def sync(
        self,
        branch_sync_id: int,
        target_version: Optional[int] = None,
        triggered_by: Union[SyncTrigger, str] = SyncTrigger.USER,
        triggered_by_id: Optional[int] = None,
    ) -> SyncResult:
        """
        Bring a branch to ``target_version`` (default: the master's current version).

        Raises:
            NotFoundError: unknown link or version
            InvalidTargetError: target behind the branch or beyond the master
            SyncInProgressError: another sync holds the branch for too long
            SyncFailedError: storage error while applying; nothing was written
        """
        trigger = _coerce_trigger(triggered_by)
        try:
            with branch_sync_locks.hold(branch_sync_id, timeout=self.config.LOCK_TIMEOUT_SECONDS):
                return self._sync_locked(branch_sync_id, target_version, trigger, triggered_by_id)
        except LockTimeout:
            raise SyncInProgressError(branch_sync_id)

    def _sync_locked(
        self,
        branch_sync_id: int,
        target_version: Optional[int],
        trigger: SyncTrigger,
        triggered_by_id: Optional[int],
    ) -> SyncResult:
        # Re-read under the lock so a sync that lost the race sees the winner's work
        link = (
            self.db.query(BranchSyncLink)
            .filter(BranchSyncLink.id == branch_sync_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not link:
            self.db.rollback()
            raise NotFoundError("Branch sync link", branch_sync_id)

        master = (
            self.db.query(MasterMenu)
            .filter(MasterMenu.id == link.master_menu_id)
            .populate_existing()
            .first()
        )
        current_version = master.current_version or 0
        from_version = link.synced_version or 0
        target = current_version if target_version is None else target_version

        if target < from_version or target > current_version:
            self.db.rollback()
            raise InvalidTargetError(target, from_version, current_version)

        if target == from_version:
            self.db.rollback()
            logger.debug(f"Branch link {branch_sync_id} already at version {target}")
            return SyncResult(
                success=True,
                message=f"Already at version {target}",
                branch_sync_id=branch_sync_id,
                from_version=from_version,
                to_version=target,
            )

        try:
            from_snapshot = self.version_store.resolve_snapshot(master.id, from_version)
            to_snapshot = self.version_store.get_snapshot(master.id, target)
        except MenuSyncException:
            self.db.rollback()
            raise

        diff = diff_snapshots(from_snapshot, to_snapshot)

        try:
            stats = self._apply_diff(link, diff)

            link.synced_version = target
            link.last_synced_at = datetime.utcnow()
            self.db.add(
                SyncLog(
                    branch_sync_id=branch_sync_id,
                    from_version=from_version,
                    to_version=target,
                    stats=stats.model_dump(mode="json"),
                    triggered_by=trigger,
                    triggered_by_id=triggered_by_id,
                )
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Sync of branch link {branch_sync_id} from version {from_version} "
                f"to {target} rolled back: {e}",
                exc_info=True,
            )
            raise SyncFailedError(branch_sync_id, str(e)) from e

        if stats.conflicts:
            logger.warning(
                f"Branch link {branch_sync_id} kept {stats.conflicts} locked field(s) "
                f"while syncing to version {target}"
            )
        logger.info(
            f"Synced branch link {branch_sync_id} from version {from_version} to {target} "
            f"({trigger.value}): {stats.added} added, {stats.updated} updated, "
            f"{stats.removed} removed, {stats.conflicts} conflicts"
        )

        return SyncResult(
            success=True,
            message=f"Synced to version {target}",
            branch_sync_id=branch_sync_id,
            from_version=from_version,
            to_version=target,
            stats=stats,
        )

    def _apply_diff(self, link: BranchSyncLink, diff: StructuralDiff) -> SyncStats:
        stats = SyncStats()
        overrides = self.override_store.get_override_map(link.id)

        local_items: Dict[int, BranchMenuItem] = {
            item.master_menu_item_id: item
            for item in self.db.query(BranchMenuItem).filter(
                BranchMenuItem.menu_id == link.menu_id,
                BranchMenuItem.master_menu_id == link.master_menu_id,
            )
        }
        local_categories: Dict[int, BranchMenuCategory] = {
            category.master_category_id: category
            for category in self.db.query(BranchMenuCategory).filter(
                BranchMenuCategory.menu_id == link.menu_id,
                BranchMenuCategory.master_menu_id == link.master_menu_id,
            )
        }

        for category in diff.categories_added + diff.categories_modified:
            local = local_categories.get(category["id"])
            if local is None:
                local = BranchMenuCategory(
                    menu_id=link.menu_id,
                    master_menu_id=link.master_menu_id,
                    master_category_id=category["id"],
                )
                self.db.add(local)
                local_categories[category["id"]] = local
            local.name = category["name"]

        for payload in diff.items_added:
            local = local_items.get(payload["id"])
            if local is None:
                local_items[payload["id"]] = self._insert_item(link, payload, overrides.get(payload["id"]), stats)
                continue
            changes = {
                field: {"from": getattr(local, column), "to": payload.get(field)}
                for field, column in ITEM_COLUMNS.items()
                if getattr(local, column) != payload.get(field)
            }
            if self._merge_changes(local, changes, overrides.get(payload["id"]), stats):
                stats.updated += 1

        for modification in diff.items_modified:
            item_id = modification.item["id"]
            local = local_items.get(item_id)
            if local is None:
                # Missing locally: rebuild from the target snapshot
                local_items[item_id] = self._insert_item(link, modification.item, overrides.get(item_id), stats)
                continue
            if self._merge_changes(local, modification.changes, overrides.get(item_id), stats):
                stats.updated += 1

        # Removals win over locks
        for payload in diff.items_removed:
            local = local_items.pop(payload["id"], None)
            if local is not None:
                self.db.delete(local)
                stats.removed += 1

        for category in diff.categories_removed:
            local = local_categories.pop(category["id"], None)
            if local is not None:
                self.db.delete(local)

        self.db.flush()
        return stats

    def _insert_item(
        self,
        link: BranchSyncLink,
        payload: Dict[str, Any],
        override: Optional[ItemOverride],
        stats: SyncStats,
    ) -> BranchMenuItem:
        values = {column: payload.get(field) for field, column in ITEM_COLUMNS.items()}

        if override is not None:
            pinned = (
                ("price", "price", override.price_override),
                ("is_available", "is_available", override.availability_override),
            )
            for field, column, pinned_value in pinned:
                if pinned_value is None or not override.locks_field(field):
                    continue
                if pinned_value != values[column]:
                    stats.record_conflict(payload["id"], field, pinned_value, values[column])
                values[column] = pinned_value

        item = BranchMenuItem(
            menu_id=link.menu_id,
            master_menu_id=link.master_menu_id,
            master_menu_item_id=payload["id"],
            **values,
        )
        self.db.add(item)
        stats.added += 1
        return item

    @staticmethod
    def _merge_changes(
        local: BranchMenuItem,
        changes: Dict[str, Dict[str, Any]],
        override: Optional[ItemOverride],
        stats: SyncStats,
    ) -> bool:
        """Apply unlocked field changes; returns whether anything was written"""
        applied = False
        for field in ITEM_DIFF_FIELDS:
            if field not in changes:
                continue
            column = ITEM_COLUMNS[field]
            incoming = changes[field]["to"]
            if override is not None and override.locks_field(field):
                stats.record_conflict(local.master_menu_item_id, field, getattr(local, column), incoming)
                continue
            setattr(local, column, incoming)
            applied = True
        return applied

    def bulk_sync(
        self,
        master_menu_id: int,
        cancel_event: Optional[threading.Event] = None,
        triggered_by: Union[SyncTrigger, str] = SyncTrigger.BULK,
        triggered_by_id: Optional[int] = None,
    ) -> BulkSyncResult:
        """
        Sync every non-disabled branch of a master menu to its current version.

        Branches are independent: one failure never stops the others. Setting
        ``cancel_event`` stops new branches from starting; branches already
        committed stay committed and the rest are reported as cancelled.
        """
        trigger = _coerce_trigger(triggered_by)
        master = self.version_store.get_master_menu(master_menu_id)
        target_version = master.current_version or 0

        targets: List[Tuple[int, int]] = [
            (link.id, link.location_id)
            for link in self.db.query(BranchSyncLink)
            .filter(
                BranchSyncLink.master_menu_id == master_menu_id,
                BranchSyncLink.sync_mode != SyncMode.DISABLED,
            )
            .order_by(BranchSyncLink.id)
        ]
        # End the read transaction before workers start writing
        self.db.commit()

        logger.info(
            f"Bulk sync of master menu {master_menu_id} to version {target_version}: "
            f"{len(targets)} branch link(s)"
        )

        max_workers = min(self.config.BULK_MAX_WORKERS, len(targets))
        if self.session_factory is not None and max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="menu-bulk-sync") as pool:
                futures = [
                    pool.submit(
                        self._sync_in_own_session,
                        branch_sync_id,
                        location_id,
                        target_version,
                        cancel_event,
                        trigger,
                        triggered_by_id,
                    )
                    for branch_sync_id, location_id in targets
                ]
                details = [future.result() for future in futures]
        else:
            details = [
                self._sync_branch(
                    self, branch_sync_id, location_id, target_version, cancel_event, trigger, triggered_by_id
                )
                for branch_sync_id, location_id in targets
            ]

        result = BulkSyncResult(
            master_menu_id=master_menu_id,
            target_version=target_version,
            total=len(details),
            successful=sum(1 for d in details if d.status == "success"),
            failed=sum(1 for d in details if d.status == "failed"),
            cancelled=sum(1 for d in details if d.status == "cancelled"),
            details=details,
        )

        logger.info(
            f"Bulk sync of master menu {master_menu_id} finished: {result.successful} succeeded, "
            f"{result.failed} failed, {result.cancelled} cancelled"
        )
        return result

    def _sync_in_own_session(
        self,
        branch_sync_id: int,
        location_id: int,
        target_version: int,
        cancel_event: Optional[threading.Event],
        trigger: SyncTrigger,
        triggered_by_id: Optional[int],
    ) -> BranchSyncDetail:
        if cancel_event is not None and cancel_event.is_set():
            return BranchSyncDetail(branch_sync_id=branch_sync_id, location_id=location_id, status="cancelled")

        try:
            db = self.session_factory()
        except Exception as e:
            logger.error(f"Bulk sync could not open a session for branch link {branch_sync_id}: {e}", exc_info=True)
            return BranchSyncDetail(
                branch_sync_id=branch_sync_id,
                location_id=location_id,
                status="failed",
                error=str(e),
            )

        try:
            executor = SyncExecutor(db, config=self.config)
            return self._sync_branch(
                executor, branch_sync_id, location_id, target_version, cancel_event, trigger, triggered_by_id
            )
        finally:
            db.close()

    @staticmethod
    def _sync_branch(
        executor: "SyncExecutor",
        branch_sync_id: int,
        location_id: int,
        target_version: int,
        cancel_event: Optional[threading.Event],
        trigger: SyncTrigger,
        triggered_by_id: Optional[int],
    ) -> BranchSyncDetail:
        if cancel_event is not None and cancel_event.is_set():
            return BranchSyncDetail(branch_sync_id=branch_sync_id, location_id=location_id, status="cancelled")

        try:
            result = executor.sync(branch_sync_id, target_version, trigger, triggered_by_id)
            return BranchSyncDetail(
                branch_sync_id=branch_sync_id,
                location_id=location_id,
                status="success",
                from_version=result.from_version,
                to_version=result.to_version,
                stats=result.stats,
            )
        except MenuSyncException as e:
            logger.warning(f"Bulk sync skipped branch link {branch_sync_id}: {e.message}")
            return BranchSyncDetail(
                branch_sync_id=branch_sync_id,
                location_id=location_id,
                status="failed",
                error=e.message,
                error_code=e.error_code,
            )
        except Exception as e:
            # Storage timeouts outside the apply transaction land here
            executor.db.rollback()
            logger.error(f"Bulk sync failed for branch link {branch_sync_id}: {e}", exc_info=True)
            return BranchSyncDetail(
                branch_sync_id=branch_sync_id,
                location_id=location_id,
                status="failed",
                error=str(e),
            )
