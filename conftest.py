import os

from cryptography.fernet import Fernet

# Muss vor dem Import der App-Module gesetzt sein (Spalten lesen den Key beim Import)
os.environ.setdefault("DB_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from access_policy import Principal
from admin_service import AdminService
from auth_utils import create_access_token
from blob_store import BlobStore
from database import init_db
from dependencies import get_db, limiter
from main import app
from models import User
from task_repository import TaskRepository
from task_service import TaskService
from user_repository import UserRepository


@pytest.fixture()
def engine():
    """Fresh in-memory database per test; StaticPool shares the one connection across threads."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def users(db):
    return UserRepository(db)


@pytest.fixture()
def tasks(db):
    return TaskRepository(db)


@pytest.fixture()
def blobs(db):
    return BlobStore(db)


@pytest.fixture()
def task_service(tasks, users, blobs):
    return TaskService(tasks, users, blobs, max_attachment_size=4096)


@pytest.fixture()
def admin_service(users, tasks):
    return AdminService(users, tasks)


@pytest.fixture()
def make_user(users):
    """Insert a user directly; the password hash is a placeholder to keep tests fast."""
    counter = {"n": 0}

    def _make(name="Alice", role="user", email=None):
        counter["n"] += 1
        user = User(
            email=email or f"{name.lower()}{counter['n']}@example.com",
            name=name,
            role=role,
            hashed_password="not-a-real-hash",
        )
        return users.insert(user)

    return _make


@pytest.fixture()
def principal_of():
    return Principal.from_user


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    # Host-Header muss zur TrustedHostMiddleware passen
    yield TestClient(app, base_url="http://localhost:8000")
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}
    return _headers
