"""
startup.py — Database Startup Sync (Idempotent)

Tables, columns, and indexes are defined in the ORM models and created via
Base.metadata.create_all(checkfirst=True). This file only adds the seed
rows the app cannot run without: roles, the permission catalog, and the
single company settings row.

Called by: main.py lifespan
Depends on: database.py (engine, SessionLocal), models, services/permission_service.py
"""

import logging
import os

from sqlalchemy.exc import SQLAlchemyError

from .database import SessionLocal, engine

log = logging.getLogger(__name__)


def run_startup_migrations() -> None:
    """Execute all idempotent startup operations. Safe to call on every app boot."""
    if os.environ.get("TESTING"):
        log.info("TESTING mode, skipping startup migrations")
        return

    from .models import Base

    Base.metadata.create_all(bind=engine, checkfirst=True)
    log.info("ORM schema sync complete (create_all checkfirst=True)")

    db = SessionLocal()
    try:
        seed_defaults(db)
    finally:
        db.close()
    log.info("Startup migrations complete")


def seed_defaults(db) -> None:
    """Seed roles, permissions and the company settings row."""
    from .models import CompanySettings
    from .services.permission_service import seed_roles_and_permissions

    try:
        seed_roles_and_permissions(db)
        if db.query(CompanySettings).count() == 0:
            db.add(CompanySettings(name=""))
            db.commit()
            log.info("Created default company settings row")
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"Startup seeding failed: {e}")
        raise
