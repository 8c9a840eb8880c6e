# backend/modules/menu_sync/services/override_store.py

import logging
from typing import Any, Dict, List, Union

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..models.menu_sync_models import BranchSyncLink, BranchMenuItem, ItemOverride
from ..schemas.menu_sync_schemas import ItemOverrideRequest
from ..exceptions.menu_sync_exceptions import NotFoundError, ValidationError
from .version_store import VersionStore

logger = logging.getLogger(__name__)

OVERRIDE_FIELDS = set(ItemOverrideRequest.model_fields.keys())


class OverrideStore:
    """Branch-local overrides of master menu items"""

    def __init__(self, db: Session):
        self.db = db
        self.version_store = VersionStore(db)

    def _get_link(self, branch_sync_id: int) -> BranchSyncLink:
        link = self.db.query(BranchSyncLink).filter(BranchSyncLink.id == branch_sync_id).first()
        if not link:
            raise NotFoundError("Branch sync link", branch_sync_id)
        return link

    def set_override(
        self,
        branch_sync_id: int,
        master_item_id: int,
        fields: Union[ItemOverrideRequest, Dict[str, Any]],
    ) -> ItemOverride:
        """
        Create or update the override for one item.

        Only the provided fields are written. Override values are copied onto
        the branch's local item right away when it exists.
        """
        if isinstance(fields, BaseModel):
            data = fields.model_dump(exclude_unset=True)
        else:
            data = dict(fields)

        unknown = set(data) - OVERRIDE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown override fields: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
            )
        self._validate_fields(data)

        link = self._get_link(branch_sync_id)
        current = self.version_store.current_snapshot(link.master_menu_id)
        if current.find_item(master_item_id) is None:
            raise NotFoundError("Master menu item", master_item_id)

        override = (
            self.db.query(ItemOverride)
            .filter(
                ItemOverride.branch_sync_id == branch_sync_id,
                ItemOverride.master_menu_item_id == master_item_id,
            )
            .first()
        )
        created = override is None
        if created:
            override = ItemOverride(
                branch_sync_id=branch_sync_id,
                master_menu_item_id=master_item_id,
                price_locked=False,
                availability_locked=False,
                fully_locked=False,
            )
            self.db.add(override)

        for key, value in data.items():
            # Lock flags are booleans in storage; None means "leave as is"
            if key in ("price_locked", "availability_locked", "fully_locked") and value is None:
                continue
            setattr(override, key, value)

        local_item = (
            self.db.query(BranchMenuItem)
            .filter(
                BranchMenuItem.menu_id == link.menu_id,
                BranchMenuItem.master_menu_id == link.master_menu_id,
                BranchMenuItem.master_menu_item_id == master_item_id,
            )
            .first()
        )
        if local_item is not None:
            if data.get("price_override") is not None:
                local_item.price = data["price_override"]
            if data.get("availability_override") is not None:
                local_item.is_available = data["availability_override"]

        self.db.commit()
        self.db.refresh(override)

        logger.info(
            f"{'Created' if created else 'Updated'} override for item {master_item_id} "
            f"on branch link {branch_sync_id}: {sorted(data)}"
        )
        return override

    @staticmethod
    def _validate_fields(data: Dict[str, Any]):
        price = data.get("price_override")
        if price is not None and price < 0:
            raise ValidationError("price_override cannot be negative", field="price_override")

        if data.get("fully_locked") is True:
            if data.get("price_override") is not None or data.get("availability_override") is not None:
                raise ValidationError(
                    "fully_locked cannot be combined with a price or availability override",
                    field="fully_locked",
                )
            if data.get("price_locked") is False or data.get("availability_locked") is False:
                raise ValidationError(
                    "fully_locked cannot be combined with an unlocked field",
                    field="fully_locked",
                )

    def remove_override(self, branch_sync_id: int, master_item_id: int) -> None:
        override = (
            self.db.query(ItemOverride)
            .filter(
                ItemOverride.branch_sync_id == branch_sync_id,
                ItemOverride.master_menu_item_id == master_item_id,
            )
            .first()
        )
        if not override:
            raise NotFoundError("Item override", f"{master_item_id} on branch link {branch_sync_id}")

        self.db.delete(override)
        self.db.commit()
        logger.info(f"Removed override for item {master_item_id} on branch link {branch_sync_id}")

    def list_overrides(self, branch_sync_id: int) -> List[ItemOverride]:
        self._get_link(branch_sync_id)
        return (
            self.db.query(ItemOverride)
            .filter(ItemOverride.branch_sync_id == branch_sync_id)
            .order_by(ItemOverride.master_menu_item_id)
            .all()
        )

    def get_override_map(self, branch_sync_id: int) -> Dict[int, ItemOverride]:
        overrides = (
            self.db.query(ItemOverride)
            .filter(ItemOverride.branch_sync_id == branch_sync_id)
            .all()
        )
        return {o.master_menu_item_id: o for o in overrides}
