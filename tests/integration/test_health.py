# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the health endpoints and queue reporting."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.routes import health
from src.infrastructure.background.broker import BrokerManager


@pytest.fixture
def client():
    """Create test client for the health router."""
    app = FastAPI()
    app.include_router(health.router)
    with patch(
        "src.api.routes.health.check_database_connection",
        AsyncMock(return_value=True),
    ):
        yield TestClient(app)


class TestHealthEndpoints:
    """Tests for /health and /ready."""

    def test_health_reports_components(self, client) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"]["status"] == "healthy"
        assert "is_running" in body["scheduler"]
        assert "status" in body["queues"]

    def test_ready(self, client) -> None:
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_unreachable_database_is_unhealthy(self) -> None:
        app = FastAPI()
        app.include_router(health.router)
        with patch(
            "src.api.routes.health.check_database_connection",
            AsyncMock(return_value=False),
        ):
            response = TestClient(app).get("/health")

        assert response.json()["status"] == "unhealthy"
        assert response.json()["database"]["message"] == "Database unreachable"


class TestQueueStats:
    """Tests for BrokerManager.get_queue_stats."""

    def test_not_initialized(self) -> None:
        assert BrokerManager().get_queue_stats() == {"status": "not_initialized"}

    def test_stub_broker(self) -> None:
        manager = BrokerManager()
        manager._broker = StubBroker()
        manager._initialized = True

        assert manager.get_queue_stats() == {"broker_type": "stub", "status": "healthy"}

    def test_redis_queue_lengths(self) -> None:
        manager = BrokerManager()
        manager._broker = MagicMock(spec=RedisBroker)
        manager._initialized = True
        redis_client = MagicMock()
        redis_client.llen.side_effect = lambda key: {"dramatiq:default": 0, "dramatiq:uploads": 3}[key]

        with patch("src.infrastructure.background.broker.redis.from_url", return_value=redis_client):
            stats = manager.get_queue_stats()

        assert stats == {
            "broker_type": "redis",
            "queues": {"default": 0, "uploads": 3},
            "status": "healthy",
        }
        redis_client.close.assert_called_once()

    def test_redis_error_is_reported(self) -> None:
        manager = BrokerManager()
        manager._broker = MagicMock(spec=RedisBroker)
        manager._initialized = True
        redis_client = MagicMock()
        redis_client.llen.side_effect = redis.ConnectionError("refused")

        with patch("src.infrastructure.background.broker.redis.from_url", return_value=redis_client):
            stats = manager.get_queue_stats()

        assert stats["status"] == "error"
        assert stats["error"] == "refused"
