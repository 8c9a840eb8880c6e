# backend/modules/menu_sync/services/master_menu_service.py

"""
Master menu edits.

Every edit produces exactly one new version through the version store and
then hands the version to the sync mode controller, which pushes it to
branches in auto mode. Category and item ids come from per-menu counters and
are never reused, so branches can match items across versions by id alone.
"""

import logging
from typing import Callable, Iterable, Optional, Set

from sqlalchemy.orm import Session

from ..models.menu_sync_models import MasterMenu, MenuVersion, VersionChangeType
from ..schemas.menu_sync_schemas import (
    CategoryInput,
    MasterMenuCreate,
    MenuItemInput,
    MenuItemUpdate,
    MenuSnapshot,
    SnapshotCategory,
    SnapshotItem,
)
from ..exceptions.menu_sync_exceptions import NotFoundError, ValidationError
from ..config.menu_sync_config import MenuSyncConfig, menu_sync_config
from .sync_mode_controller import SyncModeController
from .version_store import VersionStore

logger = logging.getLogger(__name__)


class MasterMenuService:
    """Version-producing edits of a franchise master menu"""

    def __init__(
        self,
        db: Session,
        session_factory: Optional[Callable[[], Session]] = None,
        config: Optional[MenuSyncConfig] = None,
    ):
        self.db = db
        self.config = config or menu_sync_config
        self.version_store = VersionStore(db, self.config)
        self.mode_controller = SyncModeController(db, session_factory, self.config)

    def create_master_menu(self, data: MasterMenuCreate, created_by: Optional[int] = None) -> MasterMenu:
        master = MasterMenu(
            franchise_id=data.franchise_id,
            name=data.name,
            currency=data.currency or self.config.DEFAULT_CURRENCY,
            is_default=data.is_default,
            current_version=0,
            last_category_id=0,
            last_item_id=0,
        )
        self.db.add(master)
        self.db.commit()
        self.db.refresh(master)
        logger.info(f"Created master menu {master.id} '{master.name}' for franchise {master.franchise_id}")

        if data.categories:
            self.replace_menu(master.id, data.categories, summary="Initial menu", created_by=created_by)
            self.db.refresh(master)
        return master

    # Category edits

    def add_category(
        self, master_menu_id: int, category: CategoryInput, created_by: Optional[int] = None
    ) -> MenuVersion:
        def build(snapshot: MenuSnapshot) -> MenuSnapshot:
            snapshot.categories.append(self._build_category(master_menu_id, category, set(), set()))
            return snapshot

        return self._commit_edit(
            master_menu_id,
            VersionChangeType.CATEGORY_ADDED,
            f"Added category '{category.name}'",
            build,
            created_by,
        )

    def rename_category(
        self, master_menu_id: int, category_id: int, name: str, created_by: Optional[int] = None
    ) -> MenuVersion:
        if not name or not name.strip():
            raise ValidationError("Category name cannot be empty", field="name")

        def build(snapshot: MenuSnapshot) -> MenuSnapshot:
            self._require_category(snapshot, category_id).name = name.strip()
            return snapshot

        return self._commit_edit(
            master_menu_id,
            VersionChangeType.BULK,
            f"Renamed category {category_id} to '{name.strip()}'",
            build,
            created_by,
        )

    def remove_category(
        self, master_menu_id: int, category_id: int, created_by: Optional[int] = None
    ) -> MenuVersion:
        """Remove a category together with its items"""

        def build(snapshot: MenuSnapshot) -> MenuSnapshot:
            self._require_category(snapshot, category_id)
            snapshot.categories = [c for c in snapshot.categories if c.id != category_id]
            return snapshot

        return self._commit_edit(
            master_menu_id,
            VersionChangeType.CATEGORY_REMOVED,
            f"Removed category {category_id}",
            build,
            created_by,
        )

    # Item edits

    def add_item(
        self,
        master_menu_id: int,
        category_id: int,
        item: MenuItemInput,
        created_by: Optional[int] = None,
    ) -> MenuVersion:
        def build(snapshot: MenuSnapshot) -> MenuSnapshot:
            category = self._require_category(snapshot, category_id)
            category.items.append(self._build_item(master_menu_id, item, set()))
            return snapshot

        return self._commit_edit(
            master_menu_id,
            VersionChangeType.ITEM_ADDED,
            f"Added item '{item.name}' to category {category_id}",
            build,
            created_by,
        )

    def update_item(
        self,
        master_menu_id: int,
        item_id: int,
        changes: MenuItemUpdate,
        created_by: Optional[int] = None,
    ) -> MenuVersion:
        updates = changes.model_dump(exclude_unset=True)
        if not updates:
            raise ValidationError("No item changes provided")
        target_category_id = updates.pop("category_id", None)

        def build(snapshot: MenuSnapshot) -> MenuSnapshot:
            source = next(
                (c for c in snapshot.categories if any(i.id == item_id for i in c.items)), None
            )
            if source is None:
                raise NotFoundError("Master menu item", item_id)
            item = next(i for i in source.items if i.id == item_id)
            for key, value in updates.items():
                setattr(item, key, value)

            if target_category_id is not None and target_category_id != source.id:
                destination = self._require_category(snapshot, target_category_id)
                source.items = [i for i in source.items if i.id != item_id]
                destination.items.append(item)
            return snapshot

        fields = sorted(updates) + (["category_id"] if target_category_id is not None else [])
        return self._commit_edit(
            master_menu_id,
            VersionChangeType.ITEM_MODIFIED,
            f"Updated item {item_id}: {', '.join(fields)}",
            build,
            created_by,
        )

    def remove_item(self, master_menu_id: int, item_id: int, created_by: Optional[int] = None) -> MenuVersion:
        def build(snapshot: MenuSnapshot) -> MenuSnapshot:
            if snapshot.find_item(item_id) is None:
                raise NotFoundError("Master menu item", item_id)
            for category in snapshot.categories:
                category.items = [i for i in category.items if i.id != item_id]
            return snapshot

        return self._commit_edit(
            master_menu_id,
            VersionChangeType.ITEM_REMOVED,
            f"Removed item {item_id}",
            build,
            created_by,
        )

    def replace_menu(
        self,
        master_menu_id: int,
        categories: Iterable[CategoryInput],
        summary: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> MenuVersion:
        """
        Replace the whole category tree in one version.

        Entries whose id exists in the current version keep their identity;
        entries without an id get fresh ids.
        """
        categories = list(categories)

        def build(snapshot: MenuSnapshot) -> MenuSnapshot:
            existing_categories = {c.id for c in snapshot.categories}
            existing_items = {i.id for c in snapshot.categories for i in c.items}
            return MenuSnapshot(
                categories=[
                    self._build_category(master_menu_id, category, existing_categories, existing_items)
                    for category in categories
                ]
            )

        return self._commit_edit(
            master_menu_id,
            VersionChangeType.BULK,
            summary or f"Replaced menu with {len(categories)} categories",
            build,
            created_by,
        )

    # Helpers

    def _commit_edit(
        self,
        master_menu_id: int,
        change_type: VersionChangeType,
        summary: str,
        builder: Callable[[MenuSnapshot], MenuSnapshot],
        created_by: Optional[int],
    ) -> MenuVersion:
        version = self.version_store.create_version(master_menu_id, change_type, summary, builder, created_by)
        self.mode_controller.on_version_created(master_menu_id, version.version_number)
        return version

    @staticmethod
    def _require_category(snapshot: MenuSnapshot, category_id: int) -> SnapshotCategory:
        category = snapshot.find_category(category_id)
        if category is None:
            raise NotFoundError("Menu category", category_id)
        return category

    def _build_category(
        self,
        master_menu_id: int,
        category: CategoryInput,
        existing_category_ids: Set[int],
        existing_item_ids: Set[int],
    ) -> SnapshotCategory:
        category_id = self._allocate_id(master_menu_id, "category", category.id, existing_category_ids)
        return SnapshotCategory(
            id=category_id,
            name=category.name,
            items=[self._build_item(master_menu_id, item, existing_item_ids) for item in category.items],
        )

    def _build_item(self, master_menu_id: int, item: MenuItemInput, existing_item_ids: Set[int]) -> SnapshotItem:
        return SnapshotItem(
            id=self._allocate_id(master_menu_id, "item", item.id, existing_item_ids),
            name=item.name,
            price=item.price,
            description=item.description,
            image_url=item.image_url,
            is_available=item.is_available,
        )

    def _allocate_id(self, master_menu_id: int, kind: str, requested: Optional[int], existing: Set[int]) -> int:
        # The master row is already locked by the version store at this point
        master = self.db.get(MasterMenu, master_menu_id)
        counter = "last_category_id" if kind == "category" else "last_item_id"
        last = getattr(master, counter) or 0

        if requested is None:
            setattr(master, counter, last + 1)
            return last + 1
        if requested in existing:
            return requested
        if requested <= last:
            raise ValidationError(f"Menu {kind} id {requested} was already used", field="id")
        setattr(master, counter, requested)
        return requested
