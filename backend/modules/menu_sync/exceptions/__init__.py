from .menu_sync_exceptions import (
    MenuSyncErrorCode,
    MenuSyncException,
    NotFoundError,
    ValidationError,
    InvalidTargetError,
    AlreadyLinkedError,
    SyncInProgressError,
    SyncFailedError,
)

__all__ = [
    "MenuSyncErrorCode",
    "MenuSyncException",
    "NotFoundError",
    "ValidationError",
    "InvalidTargetError",
    "AlreadyLinkedError",
    "SyncInProgressError",
    "SyncFailedError",
]
