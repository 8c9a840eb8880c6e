"""
Application startup validation and initialization.

Checks configuration and database reachability before the API serves
requests, and makes sure the menu sync tables exist.
"""

import logging
import sys
from typing import List, Tuple

import sqlalchemy as sa
from sqlalchemy import text

from core.config import settings, validate_production_config
from core.database import engine, Base

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    "master_menus",
    "menu_versions",
    "branch_sync_links",
    "item_overrides",
    "sync_logs",
    "branch_menu_categories",
    "branch_menu_items",
]


class StartupValidator:
    """Validates application startup requirements"""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def check_database_connection(self) -> bool:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection successful")
            return True
        except Exception as e:
            self.errors.append(f"Database connection failed: {str(e)}")
            return False

    def check_environment_config(self) -> bool:
        try:
            validate_production_config()
            return True
        except ValueError as e:
            self.errors.append(f"Configuration validation failed: {str(e)}")
            return False

    def check_required_tables(self) -> bool:
        """Missing tables are only a warning; development creates them"""
        try:
            existing_tables = sa.inspect(engine).get_table_names()
            missing_tables = [t for t in REQUIRED_TABLES if t not in existing_tables]
            if missing_tables:
                self.warnings.append(
                    f"Missing database tables: {', '.join(missing_tables)}. "
                    "Run migrations with: alembic upgrade head"
                )
            return True
        except Exception as e:
            self.warnings.append(f"Could not check database tables: {str(e)}")
            return True

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        checks = [
            ("Environment Configuration", self.check_environment_config),
            ("Database Connection", self.check_database_connection),
            ("Database Tables", self.check_required_tables),
        ]

        all_passed = True
        for check_name, check_func in checks:
            logger.info(f"Running check: {check_name}")
            if not check_func():
                all_passed = False

        return all_passed, self.errors, self.warnings


def create_tables():
    """Create missing tables outside production, where migrations own the schema"""
    if settings.is_production:
        return
    # Register the models on Base.metadata
    import modules.menu_sync.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Menu sync tables ensured")


def run_startup_checks():
    """Run all startup validation checks"""
    logger.info(f"Starting menu sync service ({settings.environment})")

    validator = StartupValidator()
    passed, errors, warnings = validator.validate_all()

    for warning in warnings:
        logger.warning(f"Startup warning: {warning}")
    for error in errors:
        logger.error(f"Startup error: {error}")

    if not passed and settings.is_production:
        logger.error("Cannot start in production with errors!")
        sys.exit(1)
    elif not passed:
        logger.warning("Starting in development mode despite errors")
    else:
        logger.info("All startup checks passed")

    return passed, warnings


def configure_startup_logging():
    """Configure logging for startup"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
