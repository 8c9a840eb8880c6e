# backend/modules/menu_sync/services/branch_sync_service.py

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.menu_sync_models import BranchSyncLink, MasterMenu, SyncLog, SyncMode
from ..schemas.menu_sync_schemas import (
    SyncStatusResponse,
    SyncDashboardItem,
    DashboardMasterMenu,
    DashboardBranchCounts,
)
from ..exceptions.menu_sync_exceptions import AlreadyLinkedError, NotFoundError
from ..config.menu_sync_config import MenuSyncConfig, menu_sync_config
from ..utils.pagination import paginate_query
from .sync_mode_controller import coerce_sync_mode
from .version_store import VersionStore

logger = logging.getLogger(__name__)


class BranchSyncService:
    """Branch link lifecycle and read models"""

    def __init__(self, db: Session, config: Optional[MenuSyncConfig] = None):
        self.db = db
        self.config = config or menu_sync_config
        self.version_store = VersionStore(db, self.config)

    def initialize_branch_sync(
        self,
        location_id: int,
        menu_id: int,
        master_menu_id: int,
        mode: Any = SyncMode.MANUAL,
    ) -> BranchSyncLink:
        """
        Link a branch to a master menu.

        The new link starts at version 0, so every existing master version is
        pending until the first sync.
        """
        sync_mode = coerce_sync_mode(mode)
        master = self.version_store.get_master_menu(master_menu_id)

        existing = self._find_link(location_id, master_menu_id)
        if existing:
            raise AlreadyLinkedError(location_id, master_menu_id, existing.id)

        link = BranchSyncLink(
            location_id=location_id,
            menu_id=menu_id,
            master_menu_id=master.id,
            synced_version=0,
            sync_mode=sync_mode,
        )
        self.db.add(link)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent initialize
            self.db.rollback()
            raise AlreadyLinkedError(location_id, master_menu_id)
        self.db.refresh(link)

        logger.info(
            f"Linked location {location_id} (menu {menu_id}) to master menu {master_menu_id} "
            f"in {sync_mode.value} mode, {link.pending_versions} version(s) pending"
        )
        return link

    def _find_link(self, location_id: int, master_menu_id: int) -> Optional[BranchSyncLink]:
        return (
            self.db.query(BranchSyncLink)
            .filter(
                BranchSyncLink.location_id == location_id,
                BranchSyncLink.master_menu_id == master_menu_id,
            )
            .first()
        )

    def get_link(self, branch_sync_id: int) -> BranchSyncLink:
        link = self.db.query(BranchSyncLink).filter(BranchSyncLink.id == branch_sync_id).first()
        if not link:
            raise NotFoundError("Branch sync link", branch_sync_id)
        return link

    def get_status(self, location_id: int, master_menu_id: int) -> SyncStatusResponse:
        link = self._find_link(location_id, master_menu_id)
        if not link:
            raise NotFoundError("Branch sync link", f"for location {location_id} and master menu {master_menu_id}")

        current_version = link.master_menu.current_version or 0
        pending = max(current_version - link.synced_version, 0)
        return SyncStatusResponse(
            branch_sync_id=link.id,
            synced=pending == 0,
            synced_version=link.synced_version,
            current_version=current_version,
            pending_versions=pending,
            sync_mode=link.sync_mode,
            has_pending_updates=pending > 0,
            last_synced_at=link.last_synced_at,
        )

    def get_history(
        self, branch_sync_id: int, page: int = 1, size: Optional[int] = None
    ) -> Tuple[List[SyncLog], int]:
        """Sync log entries for a link, newest first"""
        self.get_link(branch_sync_id)
        query = (
            self.db.query(SyncLog)
            .filter(SyncLog.branch_sync_id == branch_sync_id)
            .order_by(SyncLog.id.desc())
        )
        logs, total, _, _ = paginate_query(query, page, size, self.config)
        return logs, total

    def get_dashboard(self, franchise_id: int) -> List[SyncDashboardItem]:
        """Per-master-menu branch counts, derived from the link rows"""
        masters = (
            self.db.query(MasterMenu)
            .filter(MasterMenu.franchise_id == franchise_id)
            .order_by(MasterMenu.id)
            .all()
        )
        if not masters:
            return []

        links_by_master: Dict[int, List[BranchSyncLink]] = defaultdict(list)
        for link in self.db.query(BranchSyncLink).filter(
            BranchSyncLink.master_menu_id.in_([m.id for m in masters])
        ):
            links_by_master[link.master_menu_id].append(link)

        dashboard = []
        for master in masters:
            current_version = master.current_version or 0
            links = links_by_master[master.id]
            synced = sum(1 for link in links if link.synced_version >= current_version)
            dashboard.append(
                SyncDashboardItem(
                    master_menu=DashboardMasterMenu(
                        id=master.id, name=master.name, current_version=current_version
                    ),
                    branches=DashboardBranchCounts(
                        total=len(links),
                        synced=synced,
                        pending=len(links) - synced,
                        auto_sync_enabled=sum(1 for link in links if link.sync_mode == SyncMode.AUTO),
                    ),
                )
            )
        return dashboard
