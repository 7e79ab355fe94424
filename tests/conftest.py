import os

import pytest

# Must be set before tutor_progress.db creates its engine
os.environ["DATABASE_URL"] = "sqlite://"

from fastapi.testclient import TestClient  # noqa: E402

from tutor_progress.db import Base, engine  # noqa: E402
from tutor_progress.main import app  # noqa: E402
from tutor_progress.sessions import SessionRegistry, get_registry  # noqa: E402


GOOD_MESSAGE = "I went to the store yesterday because I needed milk."
BAD_MESSAGE = "I has went to the store yesterday and i dont know why."


@pytest.fixture
def registry():
    """A fresh session registry for each test."""
    return SessionRegistry(window=20, quality_threshold=80)


@pytest.fixture
def client(registry):
    """TestClient over a clean in-memory database."""
    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
