# backend/modules/menu_sync/tests/factories.py

from factory import Faker, Sequence, SubFactory, LazyAttribute
from factory.alchemy import SQLAlchemyModelFactory

from modules.menu_sync.models.menu_sync_models import (
    MasterMenu,
    BranchSyncLink,
    ItemOverride,
    SyncMode,
)


class BaseFactory(SQLAlchemyModelFactory):
    """Base factory; the session is bound per test by the ``bind_factories`` fixture."""

    class Meta:
        abstract = True
        sqlalchemy_session_persistence = "commit"

    @classmethod
    def bind(cls, session):
        cls._meta.sqlalchemy_session = session

    @classmethod
    def reset_session(cls):
        cls._meta.sqlalchemy_session = None


class MasterMenuFactory(BaseFactory):
    """Factory for master menus without versions."""

    class Meta:
        model = MasterMenu

    franchise_id = 1
    name = Sequence(lambda n: f"Master Menu {n}")
    currency = "USD"
    is_default = False
    current_version = 0
    last_category_id = 0
    last_item_id = 0


class BranchSyncLinkFactory(BaseFactory):
    """Factory for branch links; starts never synced."""

    class Meta:
        model = BranchSyncLink

    location_id = Sequence(lambda n: n + 1)
    menu_id = Sequence(lambda n: n + 1000)
    master_menu = SubFactory(MasterMenuFactory)
    master_menu_id = LazyAttribute(lambda obj: obj.master_menu.id)
    synced_version = 0
    sync_mode = SyncMode.MANUAL


class ItemOverrideFactory(BaseFactory):
    """Factory for item overrides."""

    class Meta:
        model = ItemOverride

    branch_sync = SubFactory(BranchSyncLinkFactory)
    branch_sync_id = LazyAttribute(lambda obj: obj.branch_sync.id)
    master_menu_item_id = Sequence(lambda n: n + 1)
    price_override = None
    availability_override = None
    price_locked = False
    availability_locked = False
    fully_locked = False
    override_reason = Faker("sentence")


ALL_FACTORIES = (MasterMenuFactory, BranchSyncLinkFactory, ItemOverrideFactory)
