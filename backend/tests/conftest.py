"""Shared fixtures: in-memory database, users and experiments."""
import os

# Must be set before the application modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["INTEGRATION_API_KEY"] = "test-integration-key"
os.environ["ADMIN_API_KEY"] = "test-admin-key"

import pytest
from unittest.mock import MagicMock

from expdash.database import SessionLocal, engine, Base
from expdash.middleware.auth import create_user_with_api_key
from expdash.schemas.experiment import ExperimentCreate
from expdash.services.experiments import ExperimentService
import expdash.models  # noqa: F401

OWNER_KEY = "owner-key-123"
OTHER_KEY = "other-key-456"


@pytest.fixture
def db():
    """Create test database session."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def owner(db):
    return create_user_with_api_key(db, "owner@example.com", OWNER_KEY, name="Owner")


@pytest.fixture
def other_user(db):
    return create_user_with_api_key(db, "other@example.com", OTHER_KEY, name="Other")


@pytest.fixture
def make_experiment(db, owner):
    """Factory for draft experiments; keyword arguments override the request fields."""
    def _make(**overrides):
        data = {
            "name": "Checkout button color",
            "hypothesis": "A green button converts better",
            "primary_kpi": "conversion_rate",
            "secondary_kpis": ["bounce_rate"],
            "targeting": {"device": ["mobile"]},
            "variants": [
                {"name": "Control", "traffic_percentage": 50, "is_control": True},
                {"name": "Green", "traffic_percentage": 50},
            ],
        }
        data.update(overrides)
        return ExperimentService(db).create_experiment(owner, ExperimentCreate(**data))

    return _make


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis_mock = MagicMock()
    redis_mock.get.return_value = None
    pipe_mock = MagicMock()
    pipe_mock.execute.return_value = [1, True]
    redis_mock.pipeline.return_value = pipe_mock
    return redis_mock
