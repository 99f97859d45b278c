"""Database setup.

Provides SQLAlchemy engine, session factory, and declarative base.

Defaults to an on-disk SQLite database under ``data/modhealth.db`` at the
repository root, but respects an explicit environment override via
``MODHEALTH_DB_URL`` (or ``MODHEALTH_DATABASE_URL``) for testing or custom setups.
"""
from __future__ import annotations

import os
from urllib.parse import urlparse

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from modhealth_core.config import Settings

_settings = Settings()

_env_url = _settings.database_url
if _env_url:
    parsed = urlparse(_env_url)
    if parsed.scheme == "sqlite" and parsed.path and parsed.path not in ("/:memory:", ":memory:"):
        # parsed.path is an absolute path for sqlite URLs with 3+ slashes
        _dir = os.path.dirname(parsed.path)
        if _dir:
            os.makedirs(_dir, exist_ok=True)
    DATABASE_URL = _env_url
else:
    _data_dir = _settings.data_dir()
    os.makedirs(_data_dir, exist_ok=True)
    DATABASE_URL = f"sqlite:///{os.path.join(_data_dir, 'modhealth.db')}"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

__all__ = [
    "DATABASE_URL",
    "engine",
    "SessionLocal",
    "Base",
]
