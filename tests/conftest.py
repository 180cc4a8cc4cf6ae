"""
Shared fixtures: a migrated SQLite database per test, a TestClient wired to
it and signed-in users.
"""

import os
import tempfile

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SESSION_ENCRYPTION_KEY", "test-session-encryption-key-0123456789")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("GITHUB_TOKEN", "test-github-token")
os.environ.setdefault("PUBLIC_BASE_URL", "https://api.test")
os.environ.setdefault("LOCAL_STORAGE_DIR", tempfile.mkdtemp(prefix="expense-receipts-"))
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "1000")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from expense_api.api.deps import get_storage
from expense_api.api.middleware.rate_limit import rate_limit_store
from expense_api.core.database import build_engine, get_db
from expense_api.core.migrations import run_migrations
from expense_api.main import app
from expense_api.repositories.user_repository import UserRepository
from expense_api.schemas.user import GoogleUser
from expense_api.services.auth_service import AuthService
from expense_api.services.receipt_storage import LocalReceiptBackend, ReceiptStorage


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'expenses.db'}")
    run_migrations(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    return ReceiptStorage(
        local=LocalReceiptBackend(str(tmp_path / "receipts")),
        public_base_url="https://api.test",
    )


@pytest.fixture
def client(session_factory, storage):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    rate_limit_store.clear()

    yield TestClient(app)

    app.dependency_overrides.clear()
    rate_limit_store.clear()


def _signed_in_user(session_factory, google_id, email, name):
    session = session_factory()
    try:
        user = UserRepository(session).find_or_create_user(
            GoogleUser(id=google_id, email=email, verified_email=True, name=name)
        )
        token, _ = AuthService(session).create_session(user.id)
        return user, {"Authorization": f"Bearer {token}"}
    finally:
        session.close()


@pytest.fixture
def signed_in(session_factory):
    return _signed_in_user(session_factory, "google-alice", "alice@example.com", "Alice")


@pytest.fixture
def user(signed_in):
    return signed_in[0]


@pytest.fixture
def auth_headers(signed_in):
    return signed_in[1]


@pytest.fixture
def other_signed_in(session_factory):
    return _signed_in_user(session_factory, "google-bob", "bob@example.com", "Bob")


@pytest.fixture
def other_user(other_signed_in):
    return other_signed_in[0]


@pytest.fixture
def other_auth_headers(other_signed_in):
    return other_signed_in[1]
