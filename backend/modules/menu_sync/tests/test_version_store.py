# backend/modules/menu_sync/tests/test_version_store.py

import threading

import pytest

from modules.menu_sync.models.menu_sync_models import MasterMenu, MenuVersion, VersionChangeType
from modules.menu_sync.schemas.menu_sync_schemas import MenuSnapshot
from modules.menu_sync.services.version_store import VersionStore
from modules.menu_sync.exceptions.menu_sync_exceptions import NotFoundError, ValidationError
from modules.menu_sync.tests.factories import MasterMenuFactory


def add_item_builder(item_id, price=5.0):
    def build(snapshot: MenuSnapshot):
        data = snapshot.model_dump()
        if not data["categories"]:
            data["categories"].append({"id": 1, "name": "Main", "items": []})
        data["categories"][0]["items"].append({"id": item_id, "name": f"Item {item_id}", "price": price})
        return data

    return build


class TestCreateVersion:
    """Version creation"""

    def test_versions_are_numbered_from_one(self, db_session):
        master = MasterMenuFactory()
        store = VersionStore(db_session)

        numbers = [
            store.create_version(master.id, VersionChangeType.ITEM_ADDED, f"add {i}", add_item_builder(i)).version_number
            for i in range(1, 5)
        ]

        assert numbers == [1, 2, 3, 4]
        db_session.refresh(master)
        assert master.current_version == 4

    def test_changes_data_holds_diff_against_previous(self, db_session):
        master = MasterMenuFactory()
        store = VersionStore(db_session)
        store.create_version(master.id, "item_added", "first", add_item_builder(1))

        version = store.create_version(master.id, "item_added", "second", add_item_builder(2))

        assert version.change_type == VersionChangeType.ITEM_ADDED
        assert [i["id"] for i in version.changes_data["items_added"]] == [2]
        assert version.snapshot["version"] == 2

    def test_builder_receives_copy_of_previous(self, db_session):
        master = MasterMenuFactory()
        store = VersionStore(db_session)
        store.create_version(master.id, "item_added", None, add_item_builder(1))
        seen = []

        def build(previous):
            seen.append(previous.version)
            previous.categories[0].name = "Renamed"
            return previous

        store.create_version(master.id, "bulk", "rename", build)

        assert seen == [1]
        assert store.get_snapshot(master.id, 1).categories[0].name == "Main"
        assert store.get_snapshot(master.id, 2).categories[0].name == "Renamed"

    def test_unknown_master_menu(self, db_session):
        with pytest.raises(NotFoundError):
            VersionStore(db_session).create_version(999, "bulk", None, add_item_builder(1))

    def test_unknown_change_type(self, db_session):
        master = MasterMenuFactory()
        with pytest.raises(ValidationError):
            VersionStore(db_session).create_version(master.id, "renamed", None, add_item_builder(1))

    def test_invalid_tree_is_rejected_and_head_unchanged(self, db_session):
        master = MasterMenuFactory()
        store = VersionStore(db_session)

        def duplicate_ids(snapshot):
            return {
                "categories": [
                    {"id": 1, "name": "A", "items": [{"id": 1, "name": "x"}]},
                    {"id": 2, "name": "B", "items": [{"id": 1, "name": "y"}]},
                ]
            }

        with pytest.raises(ValidationError):
            store.create_version(master.id, "bulk", None, duplicate_ids)

        db_session.refresh(master)
        assert master.current_version == 0
        assert db_session.query(MenuVersion).count() == 0

    def test_concurrent_writer_in_another_session_is_retried(self, db_session, session_factory):
        master = MasterMenuFactory()
        store = VersionStore(db_session)
        store.create_version(master.id, "item_added", None, add_item_builder(1))
        calls = []

        def racing_builder(previous):
            calls.append(previous.version)
            if len(calls) == 1:
                # Another writer commits version 2 between our read and our insert
                other = session_factory()
                try:
                    snapshot = previous.model_dump(mode="json")
                    snapshot["version"] = 2
                    other.add(
                        MenuVersion(
                            master_menu_id=master.id,
                            version_number=2,
                            change_type=VersionChangeType.BULK,
                            snapshot=snapshot,
                            changes_data={},
                        )
                    )
                    other.query(MasterMenu).filter(MasterMenu.id == master.id).update(
                        {MasterMenu.current_version: 2}
                    )
                    other.commit()
                finally:
                    other.close()
            return add_item_builder(10)(previous)

        version = store.create_version(master.id, "item_added", "racing", racing_builder)

        assert calls == [1, 2]
        assert version.version_number == 3

    def test_concurrent_creates_are_contiguous(self, db_session, session_factory):
        master = MasterMenuFactory()
        errors = []

        def writer(offset):
            session = session_factory()
            try:
                store = VersionStore(session)
                for i in range(3):
                    store.create_version(master.id, "item_added", None, add_item_builder(offset * 10 + i))
            except Exception as e:  # pragma: no cover - surfaced by the assertion below
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=writer, args=(n + 1,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        numbers = [
            v.version_number
            for v in db_session.query(MenuVersion)
            .filter(MenuVersion.master_menu_id == master.id)
            .order_by(MenuVersion.version_number)
        ]
        assert numbers == list(range(1, 13))
        db_session.refresh(master)
        assert master.current_version == 12


class TestReadVersions:
    """Snapshot reads and listings"""

    def test_version_zero_is_not_public(self, db_session, master_menu):
        store = VersionStore(db_session)

        with pytest.raises(NotFoundError):
            store.get_snapshot(master_menu.id, 0)

        baseline = store.resolve_snapshot(master_menu.id, 0)
        assert baseline.version == 0
        assert baseline.categories == []

    def test_get_snapshot_and_current_snapshot(self, db_session, master_menu):
        store = VersionStore(db_session)

        snapshot = store.get_snapshot(master_menu.id, 1)

        assert snapshot.version == 1
        assert [c.name for c in snapshot.categories] == ["Burgers", "Drinks"]
        assert store.current_snapshot(master_menu.id) == snapshot

    def test_missing_version(self, db_session, master_menu):
        with pytest.raises(NotFoundError) as exc_info:
            VersionStore(db_session).get_version(master_menu.id, 5)
        assert exc_info.value.resource == "Menu version"

    def test_missing_master_on_read(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            VersionStore(db_session).get_version(404, 1)
        assert exc_info.value.resource == "Master menu"

    def test_list_versions_newest_first_and_paginated(self, db_session):
        master = MasterMenuFactory()
        store = VersionStore(db_session)
        for i in range(1, 6):
            store.create_version(master.id, "item_added", None, add_item_builder(i))

        first_page, total = store.list_versions(master.id, page=1, size=2)
        third_page, _ = store.list_versions(master.id, page=3, size=2)

        assert total == 5
        assert [v.version_number for v in first_page] == [5, 4]
        assert [v.version_number for v in third_page] == [1]
