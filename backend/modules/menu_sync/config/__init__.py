from .menu_sync_config import MenuSyncConfig, menu_sync_config, get_menu_sync_config

__all__ = ["MenuSyncConfig", "menu_sync_config", "get_menu_sync_config"]
