import os
import tempfile
import uuid

# Configuration is read at import time, so point it at a scratch database first.
_DB_DIR = tempfile.mkdtemp(prefix="ride-backend-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "rides.db")
os.environ["JWT_SECRET_KEY"] = "test-secret-key"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from src.api.db import SessionLocal, engine, init_db  # noqa: E402
from src.api.main import app  # noqa: E402
from src.api.models.ride import Ride  # noqa: E402
from src.api.security import create_access_token  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _schema():
    init_db()
    yield
    engine.dispose()


@pytest.fixture(autouse=True)
def _clean_rides():
    yield
    with SessionLocal() as db:
        db.execute(delete(Ride))
        db.commit()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers():
    def _make(principal_id, role, **kwargs):
        token = create_access_token(subject=principal_id, role=role, **kwargs)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def rider_id():
    return uuid.uuid4()


@pytest.fixture
def driver_id():
    return uuid.uuid4()
