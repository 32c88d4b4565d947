import os
import tempfile
from typing import Generator

# Configure the app before it is imported: in-memory database, throwaway
# upload directory and a cheap hash cost so the suite stays fast.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="ambuhub-uploads-"))
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")
os.environ.setdefault("DB_CONNECT_RETRIES", "1")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ambuhub import crud, models, schemas
from ambuhub.db import Base, get_db
from ambuhub.main import app


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def upload_dir():
    from ambuhub.config import get_settings
    return get_settings().upload_dir


@pytest.fixture
def make_user(db_session):
    def _make(email="user@example.com", password="pw123", role=models.Role.standard_user):
        return crud.create_user(db_session, schemas.UserCreate(email=email, password=password, role=role))
    return _make


def signup(client, email, password="pw123", vendor=False):
    data = {"email": email, "password": password}
    if vendor:
        data["advertiser"] = "on"
    return client.post("/signup", data=data, follow_redirects=False)


def login(client, email, password="pw123"):
    return client.post("/login", data={"email": email, "password": password}, follow_redirects=False)
