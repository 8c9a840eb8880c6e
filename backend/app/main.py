from fastapi import FastAPI

from core.config import settings
from core.exceptions import register_exception_handlers
from app.startup import configure_startup_logging, create_tables, run_startup_checks

# ========== Menu Sync ==========
from modules.menu_sync.routes import router as menu_sync_router
from modules.menu_sync.services.sync_mode_controller import shutdown_auto_sync_pool

configure_startup_logging()

app = FastAPI(
    title="Master Menu Sync API",
    description="""
    Franchise master menu versioning and branch synchronization.

    ## Features

    * **Versioning** - Append-only version history of each master menu
    * **Pending changes** - What a branch would receive from its next sync
    * **Sync** - Idempotent, override-aware merges into branch menus
    * **Overrides** - Branch price and availability locks that survive syncs
    * **Bulk sync** - Push the latest version to every branch of a master menu
    """,
    version="1.0.0",
)

# Register exception handlers for consistent error responses
register_exception_handlers(app)

app.include_router(menu_sync_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup"""
    run_startup_checks()
    create_tables()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    # Let in-flight auto syncs commit
    shutdown_auto_sync_pool(wait=True)


@app.get("/")
def read_root():
    return {"message": "Menu sync backend is running"}
