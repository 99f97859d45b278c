import os, sys, tempfile
import pytest

# Always force tests to use an isolated SQLite database file under a temp dir.
# Do this before importing any modhealth_core modules (especially modhealth_core.db).
if "MODHEALTH_DB_URL" not in os.environ and "MODHEALTH_DATABASE_URL" not in os.environ:
    _test_db_dir = tempfile.mkdtemp(prefix="modhealth_test_db_")
    os.environ["MODHEALTH_DB_URL"] = f"sqlite:///{os.path.join(_test_db_dir, 'test_modhealth.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")

# Ensure repository root and both src dirs are on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
for _src in (ROOT, os.path.join(ROOT, 'packages', 'core', 'src'), os.path.join(ROOT, 'apps', 'api', 'src')):
    if _src not in sys.path:
        sys.path.insert(0, _src)

from modhealth_core.db import Base, SessionLocal, engine  # noqa: E402
from modhealth_core import models  # noqa: E402,F401


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    from modhealth_core.auth import hash_password

    def _make(username="alice", password="pw"):
        user = models.User(username=username, password_hash=hash_password(password))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_variable(db):
    def _make(name="Hydration", data_type="continuous", default_unit="ml"):
        slug = name.lower().replace(" ", "_")
        var = models.Variable(name=name, slug=slug, data_type=data_type, default_unit=default_unit)
        db.add(var)
        db.commit()
        db.refresh(var)
        return var
    return _make


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from modhealth_api.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(client):
    client.post("/api/users/", json={"username": "tester", "password": "s3cret"})
    resp = client.post("/api/users/login", json={"username": "tester", "password": "s3cret"})
    token = resp.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}
