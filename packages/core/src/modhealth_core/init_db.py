"""Database initialization helper.

Creates all tables and, on an empty database, an initial admin user.
"""
from __future__ import annotations
import logging
import os
from sqlalchemy.orm import Session
from .db import Base, engine
from .models import User
from .auth import hash_password

logger = logging.getLogger("modhealth_core.init_db")

DEFAULT_ADMIN_USER = os.environ.get("MODHEALTH_ADMIN_USER", "admin")
DEFAULT_ADMIN_PASS = os.environ.get("MODHEALTH_ADMIN_PASS", "admin")


def init_db(create_admin: bool = True) -> None:
    """Create tables and optional seed records.

    Parameters
    ----------
    create_admin: bool
        If True and no users exist, create an initial admin user with
        environment-provided credentials (MODHEALTH_ADMIN_USER/MODHEALTH_ADMIN_PASS).
    """
    Base.metadata.create_all(bind=engine)
    if not create_admin:
        return
    with Session(engine) as session:
        if session.query(User).count() == 0:
            session.add(User(username=DEFAULT_ADMIN_USER, password_hash=hash_password(DEFAULT_ADMIN_PASS)))
            session.commit()
            logger.info("init_db.admin created username=%s", DEFAULT_ADMIN_USER)


if __name__ == "__main__":  # pragma: no cover
    init_db()
