from modhealth_core.init_db import init_db, DEFAULT_ADMIN_USER
from modhealth_core.db import Base, engine, SessionLocal
from modhealth_core.models import User


def test_init_db_idempotent():
    # Run twice to ensure no duplicate admin user is created.
    init_db(create_admin=True)
    init_db(create_admin=True)
    session = SessionLocal()
    try:
        users = session.query(User).all()
    finally:
        session.close()
    assert [u.username for u in users] == [DEFAULT_ADMIN_USER]
    assert "routine_variable_times" in Base.metadata.tables
    assert engine is not None


def test_init_db_without_admin():
    init_db(create_admin=False)
    session = SessionLocal()
    try:
        assert session.query(User).count() == 0
    finally:
        session.close()
