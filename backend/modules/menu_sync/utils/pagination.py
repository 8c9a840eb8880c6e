# backend/modules/menu_sync/utils/pagination.py

"""
Offset pagination for version and sync history listings.
"""

from typing import Any, List, Optional, Tuple
from sqlalchemy.orm import Query

from ..config.menu_sync_config import MenuSyncConfig, menu_sync_config


def normalize_page(
    page: Optional[int], size: Optional[int], config: Optional[MenuSyncConfig] = None
) -> Tuple[int, int]:
    """Clamp page to >= 1 and size to [1, MAX_PAGE_SIZE]"""
    config = config or menu_sync_config
    page = max(page or 1, 1)
    size = size or config.DEFAULT_PAGE_SIZE
    size = min(max(size, 1), config.MAX_PAGE_SIZE)
    return page, size


def paginate_query(
    query: Query,
    page: Optional[int] = None,
    size: Optional[int] = None,
    config: Optional[MenuSyncConfig] = None,
) -> Tuple[List[Any], int, int, int]:
    """
    Apply offset pagination to an ordered query.

    Returns ``(items, total, page, size)`` with the normalized page and size,
    so callers can resume from any page.
    """
    page, size = normalize_page(page, size, config)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * size).limit(size).all()
    return items, total, page, size
