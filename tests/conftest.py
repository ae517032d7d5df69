import os
import sys
import tempfile

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Settings are read once at import time
os.environ["ACADIGO_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ACADIGO_RATE_LIMIT_ENABLED"] = "false"
os.environ["ACADIGO_STORAGE_BACKEND"] = "local"
os.environ["ACADIGO_STORAGE_DIR"] = tempfile.mkdtemp(prefix="acadigo-test-")
os.environ["ACADIGO_SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from acadigo.api.deps import get_limiter, get_notifier, get_storage
from acadigo.config import get_settings
from acadigo.db import Base, get_db
from acadigo.main import app
from acadigo.models import UserRole
from acadigo.services.batches import create_batch
from acadigo.services.notifications import Notifier, SendResult
from acadigo.services.storage import LocalStorage
from acadigo.services.users import create_user
from acadigo.utils.rate_limit import SlidingWindowLimiter

# Use in-memory SQLite for testing to ensure isolation
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "secret123"


class RecordingNotifier(Notifier):
    """Keeps every message instead of talking to SMTP."""

    def __init__(self):
        super().__init__(get_settings())
        self.sent = []

    def send(self, to, subject, body, template_id=None, data=None):
        self.sent.append({"to": to, "template_id": template_id, "data": data or {}})
        return SendResult(success=True)


@pytest.fixture(scope="function")
def session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(get_settings(), root=tmp_path / "files")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(session, storage, notifier):
    """
    Create a TestClient wired to the test session, storage and notifier.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass

    limiter = SlidingWindowLimiter(get_settings().rate_limit_window_seconds)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_limiter] = lambda: limiter
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def login(client, email, password=PASSWORD):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def admin(session):
    return create_user(session, "Admin", "admin@example.com", PASSWORD, UserRole.ADMIN)


@pytest.fixture
def trainer(session):
    return create_user(session, "Trainer One", "trainer@example.com", PASSWORD, UserRole.TRAINER)


@pytest.fixture
def other_trainer(session):
    return create_user(session, "Trainer Two", "trainer2@example.com", PASSWORD, UserRole.TRAINER)


@pytest.fixture
def batch(session, admin, trainer):
    return create_batch(session, admin, "Batch A", trainer_id=trainer.id)


@pytest.fixture
def student(session, batch):
    return create_user(
        session, "Student One", "student@example.com", PASSWORD, UserRole.STUDENT, batch_id=batch.id
    )


@pytest.fixture
def admin_headers(client, admin):
    return login(client, admin.email)


@pytest.fixture
def trainer_headers(client, trainer):
    return login(client, trainer.email)


@pytest.fixture
def other_trainer_headers(client, other_trainer):
    return login(client, other_trainer.email)


@pytest.fixture
def student_headers(client, student):
    return login(client, student.email)


@pytest.fixture
def auth_headers(client):
    """Log in as any account: ``auth_headers(email, password=...)``."""

    def _login(email, password=PASSWORD):
        return login(client, email, password)

    return _login
