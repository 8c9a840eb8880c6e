# backend/modules/menu_sync/services/diff_engine.py

"""
Structural diffs between master menu snapshots.

Items and categories are matched by their stable master ids, so a rename is a
modification and never an add/remove pair. Every list in a diff is sorted by
id and every per-item change map follows ``ITEM_DIFF_FIELDS``, which keeps the
output deterministic regardless of how the snapshot trees are ordered.
"""

import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..models.menu_sync_models import BranchSyncLink
from ..schemas.menu_sync_schemas import (
    ITEM_DIFF_FIELDS,
    MenuSnapshot,
    ItemModification,
    StructuralDiff,
    PendingChanges,
    VersionDiffResponse,
)
from ..exceptions.menu_sync_exceptions import NotFoundError

logger = logging.getLogger(__name__)


def diff_snapshots(from_snapshot: MenuSnapshot, to_snapshot: MenuSnapshot) -> StructuralDiff:
    """Compute the structural diff that turns ``from_snapshot`` into ``to_snapshot``"""
    from_items = from_snapshot.items_by_id()
    to_items = to_snapshot.items_by_id()

    items_added = [to_items[item_id] for item_id in sorted(to_items.keys() - from_items.keys())]
    items_removed = [from_items[item_id] for item_id in sorted(from_items.keys() - to_items.keys())]

    items_modified = []
    for item_id in sorted(from_items.keys() & to_items.keys()):
        before, after = from_items[item_id], to_items[item_id]
        changes = {
            field: {"from": before.get(field), "to": after.get(field)}
            for field in ITEM_DIFF_FIELDS
            if before.get(field) != after.get(field)
        }
        if changes:
            items_modified.append(ItemModification(item=after, changes=changes))

    from_categories = from_snapshot.categories_by_id()
    to_categories = to_snapshot.categories_by_id()

    categories_added = [
        to_categories[cid] for cid in sorted(to_categories.keys() - from_categories.keys())
    ]
    categories_removed = [
        from_categories[cid] for cid in sorted(from_categories.keys() - to_categories.keys())
    ]
    categories_modified = []
    for cid in sorted(from_categories.keys() & to_categories.keys()):
        before_name = from_categories[cid]["name"]
        after_name = to_categories[cid]["name"]
        if before_name != after_name:
            categories_modified.append(
                {
                    "id": cid,
                    "name": after_name,
                    "changes": {"name": {"from": before_name, "to": after_name}},
                }
            )

    return StructuralDiff(
        items_added=items_added,
        items_removed=items_removed,
        items_modified=items_modified,
        categories_added=categories_added,
        categories_removed=categories_removed,
        categories_modified=categories_modified,
    )


class DiffEngine:
    """Pending-change and version comparison queries"""

    def __init__(self, db: Session, version_store=None):
        self.db = db
        if version_store is None:
            from .version_store import VersionStore

            version_store = VersionStore(db)
        self.version_store = version_store

    @staticmethod
    def diff(from_snapshot: MenuSnapshot, to_snapshot: MenuSnapshot) -> StructuralDiff:
        return diff_snapshots(from_snapshot, to_snapshot)

    def pending_changes(self, link: Union[BranchSyncLink, int]) -> PendingChanges:
        """
        Changes a branch would receive by syncing to the master's current version.

        Read-only; a branch that is up to date gets empty collections.
        """
        if not isinstance(link, BranchSyncLink):
            branch_sync_id = link
            link = self.db.query(BranchSyncLink).filter(BranchSyncLink.id == branch_sync_id).first()
            if not link:
                raise NotFoundError("Branch sync link", branch_sync_id)

        master = self.version_store.get_master_menu(link.master_menu_id)
        from_version = link.synced_version or 0
        to_version = master.current_version

        pending = PendingChanges(
            branch_sync_id=link.id,
            from_version=from_version,
            to_version=to_version,
        )
        if to_version <= from_version:
            return pending

        diff = diff_snapshots(
            self.version_store.resolve_snapshot(master.id, from_version),
            self.version_store.resolve_snapshot(master.id, to_version),
        )

        pending.added_items = [item["id"] for item in diff.items_added]
        pending.removed_items = [item["id"] for item in diff.items_removed]
        for modification in diff.items_modified:
            item_id = modification.item["id"]
            pending.updated_items[item_id] = modification.changes
            if "price" in modification.changes:
                pending.price_changes[item_id] = modification.changes["price"]

        logger.debug(
            f"Branch link {link.id} has {len(pending.added_items)} added, "
            f"{len(pending.removed_items)} removed, {len(pending.updated_items)} updated items pending"
        )
        return pending

    def compare(
        self, master_menu_id: int, from_version: int, to_version: Optional[int] = None
    ) -> VersionDiffResponse:
        """Diff two stored versions; version 0 compares against an empty menu"""
        if to_version is None:
            to_version = self.version_store.get_master_menu(master_menu_id).current_version

        from_snapshot = self.version_store.resolve_snapshot(master_menu_id, from_version)
        to_snapshot = self.version_store.resolve_snapshot(master_menu_id, to_version)

        return VersionDiffResponse(
            master_menu_id=master_menu_id,
            from_version=from_version,
            to_version=to_version,
            diff=diff_snapshots(from_snapshot, to_snapshot),
            from_snapshot=from_snapshot,
            to_snapshot=to_snapshot,
        )
