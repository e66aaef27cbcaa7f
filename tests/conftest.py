"""Shared fixtures: settings pointing at a temporary upload dir and an in-memory store."""

import pytest
from fastapi.testclient import TestClient

from api import create_app
from assets import AssetStore
from config import validate_settings
from database import MemoryStore

JWT_SECRET = "test-secret"


@pytest.fixture
def settings(tmp_path):
    """Validated settings with a low bcrypt cost and a small upload ceiling."""
    return validate_settings({
        'jwt_secret': JWT_SECRET,
        'upload_dir': str(tmp_path / 'uploads'),
        'bcrypt_rounds': 4,
        'max_upload_bytes': 1024,
    })


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def assets(settings):
    return AssetStore.from_settings(settings)


@pytest.fixture
def client(settings, store):
    """Test client with the application lifespan running."""
    app = create_app(settings, store=store)
    with TestClient(app) as test_client:
        yield test_client
