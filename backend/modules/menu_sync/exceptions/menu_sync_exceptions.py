# backend/modules/menu_sync/exceptions/menu_sync_exceptions.py

"""
Exception classes for master menu synchronization.

Every error carries a stable error code so API consumers can map failures
without parsing messages. Conflicts on locked fields are not errors and have
no exception here; they are reported inside a successful sync result.
"""

from typing import Optional, Dict, Any
from enum import Enum
from fastapi import status

from core.exceptions import APIError


class MenuSyncErrorCode(str, Enum):
    """Menu sync error codes for frontend mapping"""

    VALIDATION_ERROR = "MSY400"
    NOT_FOUND = "MSY404"
    ALREADY_LINKED = "MSY409"
    INVALID_TARGET = "MSY422"
    SYNC_IN_PROGRESS = "MSY423"
    SYNC_FAILED = "MSY500"


class MenuSyncException(APIError):
    """Base exception for menu sync errors"""

    def __init__(
        self,
        status_code: int,
        error_code: MenuSyncErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(
            status_code=status_code,
            detail=message,
            error_code=error_code.value,
            context=self.details,
        )


class NotFoundError(MenuSyncException):
    """Unknown master menu, version, branch link or override"""

    def __init__(self, resource: str, identifier: Any, details: Optional[Dict[str, Any]] = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            MenuSyncErrorCode.NOT_FOUND,
            f"{resource} {identifier} not found",
            details,
        )


class ValidationError(MenuSyncException):
    """Conflicting override flags, unknown sync mode and similar input errors"""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            MenuSyncErrorCode.VALIDATION_ERROR,
            message,
            {"field": field} if field else None,
        )


class InvalidTargetError(MenuSyncException):
    """Target version outside [synced_version, current_version]"""

    def __init__(self, target_version: int, synced_version: int, current_version: int):
        self.target_version = target_version
        self.synced_version = synced_version
        self.current_version = current_version
        if target_version < synced_version:
            message = (
                f"Cannot sync backwards to version {target_version}: "
                f"branch is already at version {synced_version}"
            )
        else:
            message = (
                f"Target version {target_version} is beyond the master's "
                f"current version {current_version}"
            )
        super().__init__(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            MenuSyncErrorCode.INVALID_TARGET,
            message,
            {
                "target_version": target_version,
                "synced_version": synced_version,
                "current_version": current_version,
            },
        )


class AlreadyLinkedError(MenuSyncException):
    """Branch is already linked to the master menu"""

    def __init__(self, location_id: int, master_menu_id: int, branch_sync_id: Optional[int] = None):
        super().__init__(
            status.HTTP_409_CONFLICT,
            MenuSyncErrorCode.ALREADY_LINKED,
            f"Location {location_id} is already linked to master menu {master_menu_id}",
            {"location_id": location_id, "master_menu_id": master_menu_id, "branch_sync_id": branch_sync_id},
        )


class SyncInProgressError(MenuSyncException):
    """Another sync holds the branch lock"""

    def __init__(self, branch_sync_id: int):
        self.branch_sync_id = branch_sync_id
        super().__init__(
            status.HTTP_423_LOCKED,
            MenuSyncErrorCode.SYNC_IN_PROGRESS,
            f"A sync is already running for branch link {branch_sync_id}",
            {"branch_sync_id": branch_sync_id},
        )


class SyncFailedError(MenuSyncException):
    """Storage error while applying a sync; the branch was rolled back"""

    def __init__(self, branch_sync_id: int, reason: str):
        self.branch_sync_id = branch_sync_id
        self.reason = reason
        super().__init__(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            MenuSyncErrorCode.SYNC_FAILED,
            f"Sync failed for branch link {branch_sync_id}: {reason}",
            {"branch_sync_id": branch_sync_id},
        )
