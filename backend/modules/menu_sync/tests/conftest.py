# backend/modules/menu_sync/tests/conftest.py

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.database import Base
from modules.menu_sync.models.menu_sync_models import BranchSyncLink, SyncMode
from modules.menu_sync.config.menu_sync_config import MenuSyncConfig
from modules.menu_sync.schemas.menu_sync_schemas import (
    CategoryInput,
    MasterMenuCreate,
    MenuItemInput,
)
from modules.menu_sync.services.master_menu_service import MasterMenuService
from modules.menu_sync.services.sync_mode_controller import shutdown_auto_sync_pool

from modules.menu_sync.tests.factories import ALL_FACTORIES


@pytest.fixture
def test_engine(tmp_path):
    """File-backed SQLite so worker threads can open their own connections"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'menu_sync_test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db_session(session_factory):
    """Create a database session for testing"""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def bind_factories(db_session):
    for factory_cls in ALL_FACTORIES:
        factory_cls.bind(db_session)
    yield
    for factory_cls in ALL_FACTORIES:
        factory_cls.reset_session()


@pytest.fixture(autouse=True)
def auto_sync_pool():
    yield
    shutdown_auto_sync_pool(wait=True)


@pytest.fixture
def sync_config():
    """Config with a short lock timeout so contention tests stay fast"""
    return MenuSyncConfig(LOCK_TIMEOUT_SECONDS=1.0, BULK_MAX_WORKERS=4, AUTO_SYNC_MAX_WORKERS=2)


@pytest.fixture
def menu_service(db_session, sync_config):
    """Master menu edits with inline auto sync"""
    return MasterMenuService(db_session, config=sync_config)


def sample_categories():
    return [
        CategoryInput(
            name="Burgers",
            items=[
                MenuItemInput(name="Classic Burger", price=10.0, description="Beef patty"),
                MenuItemInput(name="Cheese Burger", price=12.0),
            ],
        ),
        CategoryInput(
            name="Drinks",
            items=[MenuItemInput(name="Cola", price=2.5)],
        ),
    ]


@pytest.fixture
def master_menu(menu_service):
    """
    Master menu at version 1:

    category 1 "Burgers": item 1 Classic Burger 10.0, item 2 Cheese Burger 12.0
    category 2 "Drinks": item 3 Cola 2.5
    """
    return menu_service.create_master_menu(
        MasterMenuCreate(franchise_id=1, name="Franchise Menu", categories=sample_categories())
    )


@pytest.fixture
def link_factory(db_session, master_menu):
    """Create branch links directly, bypassing initialize"""
    created = []

    def _create(location_id=None, menu_id=None, sync_mode=SyncMode.MANUAL, master=None, synced_version=0):
        index = len(created) + 1
        link = BranchSyncLink(
            location_id=location_id or index,
            menu_id=menu_id or 100 + index,
            master_menu_id=(master or master_menu).id,
            synced_version=synced_version,
            sync_mode=sync_mode,
        )
        db_session.add(link)
        db_session.commit()
        db_session.refresh(link)
        created.append(link)
        return link

    return _create
