# backend/modules/menu_sync/services/sync_mode_controller.py

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional

from sqlalchemy.orm import Session

from ..models.menu_sync_models import BranchSyncLink, SyncMode, SyncTrigger
from ..schemas.menu_sync_schemas import SyncResult
from ..exceptions.menu_sync_exceptions import (
    MenuSyncException,
    InvalidTargetError,
    NotFoundError,
    ValidationError,
)
from ..config.menu_sync_config import MenuSyncConfig, menu_sync_config
from .sync_executor import SyncExecutor

logger = logging.getLogger(__name__)

_pool_lock = threading.Lock()
_auto_sync_pool: Optional[ThreadPoolExecutor] = None


def get_auto_sync_pool(max_workers: int) -> ThreadPoolExecutor:
    """Shared pool for fire-and-forget auto syncs, created on first use"""
    global _auto_sync_pool
    with _pool_lock:
        if _auto_sync_pool is None:
            _auto_sync_pool = ThreadPoolExecutor(
                max_workers=max(max_workers, 1), thread_name_prefix="menu-auto-sync"
            )
        return _auto_sync_pool


def shutdown_auto_sync_pool(wait: bool = True):
    global _auto_sync_pool
    with _pool_lock:
        pool, _auto_sync_pool = _auto_sync_pool, None
    if pool is not None:
        pool.shutdown(wait=wait)
        logger.info("Auto sync pool shut down")


def coerce_sync_mode(mode: Any) -> SyncMode:
    try:
        return SyncMode(mode)
    except ValueError:
        allowed = ", ".join(m.value for m in SyncMode)
        raise ValidationError(f"Invalid sync mode '{mode}'. Must be one of: {allowed}", field="sync_mode")


class SyncModeController:
    """Sync mode transitions and auto-sync dispatch"""

    def __init__(
        self,
        db: Session,
        session_factory: Optional[Callable[[], Session]] = None,
        config: Optional[MenuSyncConfig] = None,
    ):
        self.db = db
        self.session_factory = session_factory
        self.config = config or menu_sync_config

    def set_mode(self, branch_sync_id: int, mode: Any) -> BranchSyncLink:
        """Switch a branch between auto, manual and disabled. Any transition is allowed."""
        new_mode = coerce_sync_mode(mode)

        link = self.db.query(BranchSyncLink).filter(BranchSyncLink.id == branch_sync_id).first()
        if not link:
            raise NotFoundError("Branch sync link", branch_sync_id)

        previous = link.sync_mode
        link.sync_mode = new_mode
        self.db.commit()
        self.db.refresh(link)

        logger.info(
            f"Branch link {branch_sync_id} sync mode changed from "
            f"{SyncMode(previous).value} to {new_mode.value}"
        )
        return link

    def on_version_created(self, master_menu_id: int, version_number: int) -> List[Future]:
        """
        Push a new version to every branch in auto mode.

        Syncs run on the shared pool, each with its own session, when a session
        factory is available; otherwise they run inline on this session. Errors
        are logged and never reach the editor.
        """
        if not self.config.AUTO_SYNC_ENABLED:
            return []

        link_ids = [
            link_id
            for (link_id,) in self.db.query(BranchSyncLink.id)
            .filter(
                BranchSyncLink.master_menu_id == master_menu_id,
                BranchSyncLink.sync_mode == SyncMode.AUTO,
            )
            .order_by(BranchSyncLink.id)
        ]
        if not link_ids:
            return []

        logger.info(
            f"Dispatching auto sync of master menu {master_menu_id} version {version_number} "
            f"to {len(link_ids)} branch link(s)"
        )

        if self.session_factory is None:
            futures = []
            for link_id in link_ids:
                future: Future = Future()
                future.set_result(self._auto_sync(self.db, link_id, version_number))
                futures.append(future)
            return futures

        pool = get_auto_sync_pool(self.config.AUTO_SYNC_MAX_WORKERS)
        return [pool.submit(self._auto_sync_in_own_session, link_id, version_number) for link_id in link_ids]

    def _auto_sync_in_own_session(self, branch_sync_id: int, version_number: int) -> Optional[SyncResult]:
        db = self.session_factory()
        try:
            return self._auto_sync(db, branch_sync_id, version_number)
        finally:
            db.close()

    def _auto_sync(self, db: Session, branch_sync_id: int, version_number: int) -> Optional[SyncResult]:
        try:
            return SyncExecutor(db, config=self.config).sync(
                branch_sync_id, version_number, triggered_by=SyncTrigger.AUTO
            )
        except InvalidTargetError as e:
            # A later version was already applied
            logger.debug(f"Auto sync of branch link {branch_sync_id} skipped: {e.message}")
        except MenuSyncException as e:
            logger.warning(f"Auto sync of branch link {branch_sync_id} failed: {e.message}")
        except Exception as e:
            db.rollback()
            logger.error(f"Auto sync of branch link {branch_sync_id} failed: {e}", exc_info=True)
        return None
