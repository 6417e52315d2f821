"""Unit tests for the status API."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from k8stream import __version__
from k8stream.api.app import create_app
from k8stream.observability import metrics  # noqa: F401  registers collectors


@pytest.fixture()
def batcher() -> MagicMock:
    mock = MagicMock()
    mock.run_id = "run-1"
    mock.queue_depth = 3
    mock.pending_count = 2
    return mock


@pytest.fixture()
def store() -> MagicMock:
    mock = MagicMock()
    mock.tables.return_value = ["events", "service"]
    return mock


class TestHealth:
    def test_health(self, batcher: MagicMock, store: MagicMock) -> None:
        client = TestClient(create_app(batcher=batcher, store=store))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestStatus:
    def test_reports_pipeline_state(self, batcher: MagicMock, store: MagicMock) -> None:
        watcher = MagicMock(synced=True)
        client = TestClient(create_app(batcher=batcher, store=store, watcher=watcher))
        body = client.get("/status").json()
        assert body == {
            "version": __version__,
            "run_id": "run-1",
            "synced": True,
            "queue_depth": 3,
            "pending": 2,
            "store_tables": 2,
        }

    def test_without_watcher_not_synced(self, batcher: MagicMock, store: MagicMock) -> None:
        client = TestClient(create_app(batcher=batcher, store=store))
        assert client.get("/status").json()["synced"] is False

    def test_store_failure_returns_500(self, batcher: MagicMock, store: MagicMock) -> None:
        store.tables.side_effect = RuntimeError("store closed")
        client = TestClient(create_app(batcher=batcher, store=store), raise_server_exceptions=False)
        response = client.get("/status")
        assert response.status_code == 500
        assert response.json()["error"] == "INTERNAL_ERROR"


class TestMetrics:
    def test_exposition_format(self, batcher: MagicMock, store: MagicMock) -> None:
        client = TestClient(create_app(batcher=batcher, store=store))
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "k8stream_notifications_total" in response.text
