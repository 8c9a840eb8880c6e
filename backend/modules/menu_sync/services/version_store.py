# backend/modules/menu_sync/services/version_store.py

"""
Append-only version chain for master menus.

Version numbers are contiguous from 1 per master menu. Writers are serialized
by an in-process lock per menu and a row lock on the master menu; the unique
(master_menu_id, version_number) constraint plus a conditional increment of
``current_version`` catch writers in other processes, and the loser retries.
"""

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..models.menu_sync_models import MasterMenu, MenuVersion, VersionChangeType
from ..schemas.menu_sync_schemas import MenuSnapshot
from ..exceptions.menu_sync_exceptions import NotFoundError, ValidationError
from ..config.menu_sync_config import MenuSyncConfig, menu_sync_config
from ..utils.database_retry import retry_on_conflict
from ..utils.locks import master_menu_locks
from ..utils.pagination import paginate_query
from .diff_engine import diff_snapshots

logger = logging.getLogger(__name__)

SnapshotBuilder = Callable[[MenuSnapshot], Union[MenuSnapshot, dict]]


class VersionHeadMoved(Exception):
    """current_version changed between read and conditional increment"""


class VersionStore:
    """Creates and reads immutable master menu versions"""

    def __init__(self, db: Session, config: Optional[MenuSyncConfig] = None):
        self.db = db
        self.config = config or menu_sync_config

    def get_master_menu(self, master_menu_id: int, for_update: bool = False) -> MasterMenu:
        query = self.db.query(MasterMenu).filter(MasterMenu.id == master_menu_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        master = query.first()
        if not master:
            raise NotFoundError("Master menu", master_menu_id)
        return master

    def create_version(
        self,
        master_menu_id: int,
        change_type: Union[VersionChangeType, str],
        summary: Optional[str],
        snapshot_builder: SnapshotBuilder,
        created_by: Optional[int] = None,
    ) -> MenuVersion:
        """
        Append a new version built from the current head.

        ``snapshot_builder`` receives a copy of the previous snapshot (empty for
        the first version) and returns the new tree. It may run more than once
        when a concurrent writer wins a race, so it must not have side effects
        outside the session.
        """
        change_type = self._coerce_change_type(change_type)

        with master_menu_locks.hold(master_menu_id):
            try:
                return retry_on_conflict(
                    self._append_version,
                    master_menu_id,
                    change_type,
                    summary,
                    snapshot_builder,
                    created_by,
                    max_retries=self.config.VERSION_CREATE_MAX_RETRIES,
                    on_retry=lambda e: self.db.rollback(),
                    retry_on=(VersionHeadMoved,),
                )
            except Exception:
                self.db.rollback()
                raise

    def _append_version(
        self,
        master_menu_id: int,
        change_type: VersionChangeType,
        summary: Optional[str],
        snapshot_builder: SnapshotBuilder,
        created_by: Optional[int],
    ) -> MenuVersion:
        master = self.get_master_menu(master_menu_id, for_update=True)
        head = master.current_version or 0
        previous = self.resolve_snapshot(master_menu_id, head)
        next_number = head + 1

        try:
            built = snapshot_builder(previous.model_copy(deep=True))
            if isinstance(built, MenuSnapshot):
                built = built.model_dump()
            snapshot = MenuSnapshot.model_validate(built)
        except ValueError as e:
            raise ValidationError(f"Invalid menu snapshot: {e}", field="snapshot")

        snapshot.version = next_number
        snapshot.created_at = datetime.utcnow()
        changes = diff_snapshots(previous, snapshot)

        version = MenuVersion(
            master_menu_id=master_menu_id,
            version_number=next_number,
            change_type=change_type,
            change_summary=summary,
            snapshot=snapshot.model_dump(mode="json"),
            changes_data=changes.model_dump(mode="json"),
            created_by=created_by,
        )
        self.db.add(version)
        self.db.flush()

        # Conditional increment; zero rows means another writer moved the head
        updated = (
            self.db.query(MasterMenu)
            .filter(MasterMenu.id == master_menu_id, MasterMenu.current_version == head)
            .update({MasterMenu.current_version: next_number}, synchronize_session=False)
        )
        if updated != 1:
            raise VersionHeadMoved(f"Master menu {master_menu_id} moved past version {head}")

        self.db.commit()
        self.db.refresh(version)
        self.db.refresh(master)

        logger.info(
            f"Created version {next_number} of master menu {master_menu_id} "
            f"({change_type.value}): {summary or 'no summary'}"
        )
        return version

    def get_version(self, master_menu_id: int, version_number: int) -> MenuVersion:
        version = (
            self.db.query(MenuVersion)
            .filter(
                MenuVersion.master_menu_id == master_menu_id,
                MenuVersion.version_number == version_number,
            )
            .first()
        )
        if not version:
            # Distinguish an unknown menu from an unknown version
            self.get_master_menu(master_menu_id)
            raise NotFoundError("Menu version", f"{version_number} of master menu {master_menu_id}")
        return version

    def get_snapshot(self, master_menu_id: int, version_number: int) -> MenuSnapshot:
        return MenuSnapshot.model_validate(self.get_version(master_menu_id, version_number).snapshot)

    def resolve_snapshot(self, master_menu_id: int, version_number: int) -> MenuSnapshot:
        """Like get_snapshot, but version 0 resolves to the empty baseline"""
        if version_number == 0:
            return MenuSnapshot(version=0, categories=[])
        return self.get_snapshot(master_menu_id, version_number)

    def current_snapshot(self, master_menu_id: int) -> MenuSnapshot:
        master = self.get_master_menu(master_menu_id)
        return self.resolve_snapshot(master_menu_id, master.current_version or 0)

    def list_versions(
        self, master_menu_id: int, page: int = 1, size: Optional[int] = None
    ) -> Tuple[List[MenuVersion], int]:
        """Versions newest first"""
        self.get_master_menu(master_menu_id)
        query = (
            self.db.query(MenuVersion)
            .filter(MenuVersion.master_menu_id == master_menu_id)
            .order_by(MenuVersion.version_number.desc())
        )
        versions, total, _, _ = paginate_query(query, page, size, self.config)
        return versions, total

    @staticmethod
    def _coerce_change_type(change_type: Any) -> VersionChangeType:
        try:
            return VersionChangeType(change_type)
        except ValueError:
            raise ValidationError(f"Unknown change type: {change_type}", field="change_type")
