# backend/modules/menu_sync/config/menu_sync_config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class MenuSyncConfig(BaseSettings):
    """
    Configuration for master menu synchronization.

    Values are read from ``MENU_SYNC_*`` environment variables.
    """

    model_config = SettingsConfigDict(env_prefix="MENU_SYNC_", case_sensitive=False)

    # Worker threads used by bulk sync fan-out (1 = strictly sequential)
    BULK_MAX_WORKERS: int = 4

    # Push new versions to branches in auto mode as soon as they are created
    AUTO_SYNC_ENABLED: bool = True
    AUTO_SYNC_MAX_WORKERS: int = 4

    # How long a sync waits for the branch lock before failing with SyncInProgress
    LOCK_TIMEOUT_SECONDS: float = 5.0

    # Retries when two writers race for the same version number
    VERSION_CREATE_MAX_RETRIES: int = 3

    # Pagination for version and history listings
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    DEFAULT_CURRENCY: str = "USD"


# Global instance
menu_sync_config = MenuSyncConfig()


def get_menu_sync_config() -> MenuSyncConfig:
    """Get the menu sync configuration."""
    return menu_sync_config
