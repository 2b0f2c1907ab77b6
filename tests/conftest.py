import os
import tempfile
from pathlib import Path

import pytest

TEST_DB_PATH = Path(tempfile.gettempdir()) / "slotbook_test.db"

# Must be set before slotbook.config.settings is imported
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ.setdefault("JWT_SECRET_KEY", "ci-test-secret")
os.environ["WHATSAPP_ENABLED"] = "false"
os.environ["NOTIFICATIONS_VIA_WORKER"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from slotbook.config.database import SessionLocal, engine  # noqa: E402
from slotbook.main import app  # noqa: E402
from slotbook.models import Base  # noqa: E402


@pytest.fixture(autouse=True)
def prepare_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
