# backend/modules/menu_sync/tests/test_sync_executor.py

"""
Tests for single-branch sync: merging, overrides, idempotency and atomicity.
"""

import threading
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from modules.menu_sync.config.menu_sync_config import MenuSyncConfig
from modules.menu_sync.models.menu_sync_models import (
    BranchMenuCategory,
    BranchMenuItem,
    BranchSyncLink,
    SyncLog,
    SyncTrigger,
)
from modules.menu_sync.schemas.menu_sync_schemas import (
    CategoryInput,
    MasterMenuCreate,
    MenuItemInput,
    MenuItemUpdate,
)
from modules.menu_sync.services.branch_sync_service import BranchSyncService
from modules.menu_sync.services.diff_engine import DiffEngine
from modules.menu_sync.services.override_store import OverrideStore
from modules.menu_sync.services.sync_executor import SyncExecutor
from modules.menu_sync.exceptions.menu_sync_exceptions import (
    InvalidTargetError,
    NotFoundError,
    SyncFailedError,
    SyncInProgressError,
)
from modules.menu_sync.utils.locks import branch_sync_locks


def local_items(db_session, link):
    db_session.expire_all()
    return {
        item.master_menu_item_id: item
        for item in db_session.query(BranchMenuItem).filter(BranchMenuItem.menu_id == link.menu_id)
    }


def reload_link(db_session, link_id):
    db_session.expire_all()
    return db_session.query(BranchSyncLink).filter(BranchSyncLink.id == link_id).one()


@pytest.fixture
def executor(db_session, sync_config):
    return SyncExecutor(db_session, config=sync_config)


@pytest.fixture
def pricing_menu(menu_service):
    """
    Master menu where item 7 costs 400 at version 1 and 500 at version 3.
    """
    master = menu_service.create_master_menu(
        MasterMenuCreate(
            franchise_id=2,
            name="Pricing Menu",
            categories=[
                CategoryInput(
                    id=1,
                    name="Mains",
                    items=[
                        MenuItemInput(id=7, name="Steak", price=400),
                        MenuItemInput(id=8, name="Salad", price=150),
                    ],
                )
            ],
        )
    )
    menu_service.update_item(master.id, 8, MenuItemUpdate(description="Fresh greens"))
    menu_service.update_item(master.id, 7, MenuItemUpdate(price=500))
    return master


class TestSync:
    """Applying versions to a branch"""

    def test_first_sync_copies_whole_menu(self, db_session, executor, link_factory):
        link = link_factory()

        result = executor.sync(link.id)

        assert result.success is True
        assert (result.from_version, result.to_version) == (0, 1)
        assert result.stats.added == 3
        items = local_items(db_session, link)
        assert items[1].name == "Classic Burger"
        assert items[3].master_category_id == 2
        categories = db_session.query(BranchMenuCategory).filter(BranchMenuCategory.menu_id == link.menu_id).all()
        assert sorted(c.name for c in categories) == ["Burgers", "Drinks"]
        assert reload_link(db_session, link.id).synced_version == 1

    def test_scenario_price_change_without_overrides(self, db_session, executor, pricing_menu, link_factory):
        link = link_factory(master=pricing_menu)
        executor.sync(link.id, target_version=1)
        assert local_items(db_session, link)[7].price == 400

        pending = DiffEngine(db_session).pending_changes(reload_link(db_session, link.id))
        assert pending.price_changes[7] == {"from": 400, "to": 500}

        result = executor.sync(link.id)

        assert result.to_version == 3
        assert reload_link(db_session, link.id).synced_version == 3
        assert local_items(db_session, link)[7].price == 500

    def test_scenario_price_locked_override_survives(self, db_session, executor, pricing_menu, link_factory):
        link = link_factory(master=pricing_menu)
        executor.sync(link.id, target_version=1)
        OverrideStore(db_session).set_override(link.id, 7, {"price_override": 450, "price_locked": True})

        result = executor.sync(link.id)

        assert local_items(db_session, link)[7].price == 450
        assert result.stats.conflicts == 1
        conflict = result.stats.conflict_details[0]
        assert (conflict.item_id, conflict.field) == (7, "price")
        assert conflict.locked_value == 450
        assert conflict.incoming_value == 500
        # Unlocked changes still land
        assert local_items(db_session, link)[8].description == "Fresh greens"

    def test_second_sync_is_a_noop(self, db_session, executor, link_factory):
        link = link_factory()
        executor.sync(link.id)

        result = executor.sync(link.id)

        assert result.success is True
        assert result.stats.added == result.stats.updated == result.stats.removed == 0
        assert db_session.query(SyncLog).filter(SyncLog.branch_sync_id == link.id).count() == 1

    def test_sync_log_records_trigger(self, db_session, executor, link_factory):
        link = link_factory()

        executor.sync(link.id, triggered_by="bulk", triggered_by_id=17)

        log = db_session.query(SyncLog).filter(SyncLog.branch_sync_id == link.id).one()
        assert (log.from_version, log.to_version) == (0, 1)
        assert log.triggered_by == SyncTrigger.BULK
        assert log.triggered_by_id == 17
        assert log.stats["added"] == 3

    def test_backward_sync_is_rejected(self, executor, pricing_menu, link_factory):
        link = link_factory(master=pricing_menu)
        executor.sync(link.id)

        with pytest.raises(InvalidTargetError):
            executor.sync(link.id, target_version=2)

    def test_target_beyond_current_is_rejected(self, executor, link_factory):
        link = link_factory()

        with pytest.raises(InvalidTargetError) as exc_info:
            executor.sync(link.id, target_version=9)
        assert exc_info.value.current_version == 1

    def test_unknown_link(self, executor):
        with pytest.raises(NotFoundError):
            executor.sync(12345)

    def test_fully_locked_item_is_still_removed(self, db_session, executor, menu_service, master_menu, link_factory):
        link = link_factory()
        executor.sync(link.id)
        OverrideStore(db_session).set_override(link.id, 2, {"fully_locked": True})
        menu_service.remove_item(master_menu.id, 2)

        result = executor.sync(link.id)

        assert result.stats.removed == 1
        assert 2 not in local_items(db_session, link)

    def test_fully_locked_item_keeps_every_field(self, db_session, executor, menu_service, master_menu, link_factory):
        link = link_factory()
        executor.sync(link.id)
        OverrideStore(db_session).set_override(link.id, 1, {"fully_locked": True})
        menu_service.update_item(master_menu.id, 1, MenuItemUpdate(name="Big Burger", is_available=False))

        result = executor.sync(link.id)

        item = local_items(db_session, link)[1]
        assert item.name == "Classic Burger"
        assert item.is_available is True
        assert [c.field for c in result.stats.conflict_details] == ["name", "is_available"]
        assert result.stats.updated == 0

    def test_availability_lock_only_blocks_availability(
        self, db_session, executor, menu_service, master_menu, link_factory
    ):
        link = link_factory()
        executor.sync(link.id)
        OverrideStore(db_session).set_override(link.id, 3, {"availability_locked": True})
        menu_service.update_item(master_menu.id, 3, MenuItemUpdate(price=3.0, is_available=False))

        result = executor.sync(link.id)

        item = local_items(db_session, link)[3]
        assert item.price == 3.0
        assert item.is_available is True
        assert result.stats.updated == 1
        assert result.stats.conflicts == 1

    def test_added_item_keeps_preexisting_locked_override(
        self, db_session, executor, menu_service, master_menu, link_factory
    ):
        link = link_factory()
        executor.sync(link.id)
        version = menu_service.add_item(master_menu.id, 2, MenuItemInput(name="Lemonade", price=3.0))
        new_item_id = version.snapshot["categories"][1]["items"][-1]["id"]
        OverrideStore(db_session).set_override(
            link.id, new_item_id, {"price_override": 2.75, "price_locked": True}
        )

        result = executor.sync(link.id)

        assert local_items(db_session, link)[new_item_id].price == 2.75
        assert result.stats.added == 1
        assert result.stats.conflicts == 1

    def test_missing_local_item_is_recreated(self, db_session, executor, menu_service, master_menu, link_factory):
        link = link_factory()
        executor.sync(link.id)
        db_session.delete(local_items(db_session, link)[1])
        db_session.commit()
        menu_service.update_item(master_menu.id, 1, MenuItemUpdate(price=10.5))

        result = executor.sync(link.id)

        assert result.stats.added == 1
        assert local_items(db_session, link)[1].price == 10.5

    def test_category_move_and_rename(self, db_session, executor, menu_service, master_menu, link_factory):
        link = link_factory()
        executor.sync(link.id)
        menu_service.update_item(master_menu.id, 2, MenuItemUpdate(category_id=2))
        menu_service.rename_category(master_menu.id, 2, "Extras")

        executor.sync(link.id)

        assert local_items(db_session, link)[2].master_category_id == 2
        category = (
            db_session.query(BranchMenuCategory)
            .filter(BranchMenuCategory.menu_id == link.menu_id, BranchMenuCategory.master_category_id == 2)
            .one()
        )
        assert category.name == "Extras"

    def test_fully_locked_item_follows_category_moves(
        self, db_session, executor, menu_service, master_menu, link_factory
    ):
        link = link_factory()
        executor.sync(link.id)
        OverrideStore(db_session).set_override(link.id, 3, {"fully_locked": True})
        menu_service.add_category(master_menu.id, CategoryInput(name="Beverages"))
        menu_service.update_item(master_menu.id, 3, MenuItemUpdate(category_id=3, price=2.0))
        menu_service.remove_category(master_menu.id, 2)

        result = executor.sync(link.id)

        item = local_items(db_session, link)[3]
        assert item.master_category_id == 3
        assert item.price == 2.5
        assert [c.field for c in result.stats.conflict_details] == ["price"]
        categories = db_session.query(BranchMenuCategory).filter(BranchMenuCategory.menu_id == link.menu_id).all()
        assert sorted(c.master_category_id for c in categories) == [1, 3]


class TestSyncAtomicity:
    """Failures and concurrency"""

    def test_storage_failure_rolls_back(self, db_session, executor, link_factory):
        link = link_factory()
        failure = OperationalError("INSERT INTO branch_menu_items", {}, Exception("disk I/O error"))

        with patch.object(db_session, "flush", side_effect=failure):
            with pytest.raises(SyncFailedError):
                executor.sync(link.id)

        assert reload_link(db_session, link.id).synced_version == 0
        assert local_items(db_session, link) == {}
        assert db_session.query(SyncLog).count() == 0

    def test_failure_after_partial_apply_leaves_branch_untouched(
        self, db_session, executor, menu_service, master_menu, link_factory
    ):
        link = link_factory()
        executor.sync(link.id)
        menu_service.update_item(master_menu.id, 1, MenuItemUpdate(price=99.0))

        menu_service.remove_item(master_menu.id, 3)
        menu_service.add_item(master_menu.id, 1, MenuItemInput(name="Slider", price=4.0))

        # The new item is inserted before the modification step fails
        with patch.object(SyncExecutor, "_merge_changes", side_effect=RuntimeError("boom")):
            with pytest.raises(SyncFailedError):
                executor.sync(link.id)

        link = reload_link(db_session, link.id)
        assert link.synced_version == 1
        items = local_items(db_session, link)
        assert items[1].price == 10.0
        assert 3 in items
        assert 4 not in items

    def test_held_lock_raises_sync_in_progress(self, db_session, link_factory):
        link = link_factory()
        executor = SyncExecutor(db_session, config=MenuSyncConfig(LOCK_TIMEOUT_SECONDS=0))

        with branch_sync_locks.hold(link.id):
            with pytest.raises(SyncInProgressError):
                executor.sync(link.id)

    def test_concurrent_syncs_write_one_log(self, db_session, session_factory, link_factory):
        link = link_factory()
        config = MenuSyncConfig(LOCK_TIMEOUT_SECONDS=30)
        barrier = threading.Barrier(3)
        results, errors = [], []

        def run():
            session = session_factory()
            try:
                barrier.wait()
                results.append(SyncExecutor(session, config=config).sync(link.id))
            except Exception as e:  # pragma: no cover - surfaced by the assertion below
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=run) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert sorted(r.stats.added for r in results) == [0, 0, 3]
        assert db_session.query(SyncLog).filter(SyncLog.branch_sync_id == link.id).count() == 1
        assert reload_link(db_session, link.id).synced_version == 1


def shared_menu_items(db_session, menu_id):
    db_session.expire_all()
    return {
        (item.master_menu_id, item.master_menu_item_id): item
        for item in db_session.query(BranchMenuItem).filter(BranchMenuItem.menu_id == menu_id)
    }


@pytest.fixture
def breakfast_menu(menu_service):
    """Second master menu whose ids overlap the franchise menu's"""
    return menu_service.create_master_menu(
        MasterMenuCreate(
            franchise_id=1,
            name="Breakfast",
            categories=[CategoryInput(name="Eggs", items=[MenuItemInput(name="Omelette", price=6.0)])],
        )
    )


@pytest.fixture
def shared_links(db_session, master_menu, breakfast_menu):
    service = BranchSyncService(db_session)
    return (
        service.initialize_branch_sync(10, 500, master_menu.id),
        service.initialize_branch_sync(10, 500, breakfast_menu.id),
    )


class TestSharedLocalMenu:
    """Several master menus feeding one local menu"""

    def test_masters_keep_their_own_items(self, db_session, executor, master_menu, breakfast_menu, shared_links):
        for link in shared_links:
            executor.sync(link.id)

        items = shared_menu_items(db_session, 500)

        assert {key: item.name for key, item in items.items()} == {
            (master_menu.id, 1): "Classic Burger",
            (master_menu.id, 2): "Cheese Burger",
            (master_menu.id, 3): "Cola",
            (breakfast_menu.id, 1): "Omelette",
        }
        categories = db_session.query(BranchMenuCategory).filter(BranchMenuCategory.menu_id == 500).all()
        assert sorted((c.master_menu_id, c.master_category_id) for c in categories) == [
            (master_menu.id, 1),
            (master_menu.id, 2),
            (breakfast_menu.id, 1),
        ]

    def test_removal_only_touches_its_master(
        self, db_session, executor, menu_service, master_menu, breakfast_menu, shared_links
    ):
        for link in shared_links:
            executor.sync(link.id)
        menu_service.remove_item(breakfast_menu.id, 1)

        result = executor.sync(shared_links[1].id)

        assert result.stats.removed == 1
        items = shared_menu_items(db_session, 500)
        assert (breakfast_menu.id, 1) not in items
        assert items[(master_menu.id, 1)].name == "Classic Burger"

    def test_override_applies_to_its_master_only(
        self, db_session, executor, master_menu, breakfast_menu, shared_links
    ):
        for link in shared_links:
            executor.sync(link.id)

        OverrideStore(db_session).set_override(shared_links[1].id, 1, {"price_override": 5.0, "price_locked": True})

        items = shared_menu_items(db_session, 500)
        assert items[(breakfast_menu.id, 1)].price == 5.0
        assert items[(master_menu.id, 1)].price == 10.0
