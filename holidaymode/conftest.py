# holidaymode/conftest.py
import os

import pytest

# Tests run against a private in-memory SQLite database
os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """
    Fresh schema for every test.

    The engine is rebuilt so tests that swap TEST_DATABASE_URL or dispose
    the engine never leak state into the next test.
    """
    from holidaymode.core.database import dispose_engine, init_engine, reset_database

    dispose_engine()
    init_engine()
    reset_database()
    yield
    dispose_engine()


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from holidaymode.main import app

    return TestClient(app)


@pytest.fixture
def user_headers():
    def _headers(user_id: str = "user_1", tz: str = "UTC") -> dict:
        return {"X-User-Id": user_id, "X-Timezone": tz}

    return _headers
