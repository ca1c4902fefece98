"""Shared fixtures for API tests."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.dependencies import get_feed_service, get_status_monitor
from src.feed.service import FeedService
from tests.factories import make_feed_service, make_status_monitor


@pytest.fixture
def feed_service() -> FeedService:
    return make_feed_service()


@pytest.fixture
def status_monitor() -> MagicMock:
    return make_status_monitor()


@pytest.fixture
def app(feed_service, status_monitor):
    """App with the feed service and status monitor overridden.

    The lifespan is not entered, so no background monitor is started.
    """
    app = create_app()
    app.dependency_overrides[get_feed_service] = lambda: feed_service
    app.dependency_overrides[get_status_monitor] = lambda: status_monitor
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
