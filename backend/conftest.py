import os
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

import pytest
from fastapi.testclient import TestClient

from auth import get_current_user, get_optional_user
from main import app

TEST_USER = {"username": "analyst", "full_name": "Risk Analyst"}


@pytest.fixture
def client():
    app.dependency_overrides[get_current_user] = lambda: TEST_USER
    app.dependency_overrides[get_optional_user] = lambda: TEST_USER
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    app.dependency_overrides[get_optional_user] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def collections(monkeypatch):
    """Replace every MongoDB collection in database with a MagicMock"""
    import database

    mocks = {}
    for name in (
        "users_collection",
        "risks_collection",
        "treatments_collection",
        "workshops_collection",
        "soa_controls_collection",
        "information_assets_collection",
        "comments_collection",
    ):
        collection = MagicMock(name=name)
        collection.find.return_value = []
        collection.find_one.return_value = None
        monkeypatch.setattr(database, name, collection)
        mocks[name[: -len("_collection")]] = collection
    return SimpleNamespace(**mocks)
