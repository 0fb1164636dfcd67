"""
Test Suite for the memory HTTP API

Routes are exercised with FastAPI's TestClient against an in-memory store.
"""

import sqlite3
import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient

from api import dependencies
from api.main import app


@pytest.fixture
def client(manager):
    """Client bound to the per-test manager (startup hooks not run)"""
    dependencies.memory_manager = manager
    yield TestClient(app)
    dependencies.memory_manager = None


def record(client, owner, user_message, assistant_reply=""):
    return client.post("/api/memory/turns", json={
        'owner': owner,
        'user_message': user_message,
        'assistant_reply': assistant_reply
    })


class TestTurns:

    def test_record_semantic_turn(self, client):
        response = record(
            client, "42",
            "I prefer dark mode in every app",
            "Noted, dark mode it is for everything."
        )

        assert response.status_code == 200
        data = response.json()
        assert data['stored'] is True
        assert data['sector'] == 'semantic'
        assert data['reply_stored'] is True

    def test_skipped_turn(self, client):
        data = record(client, "42", "/help").json()

        assert data['stored'] is False
        assert data['sector'] is None
        assert "too short" in data['reason']

    def test_store_failure_is_503(self, client, manager, monkeypatch):
        def broken_insert(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(manager.store, 'insert', broken_insert)

        response = record(client, "42", "I prefer dark mode in every app")

        assert response.status_code == 503

    def test_empty_owner_rejected(self, client):
        assert record(client, "", "I prefer dark mode in every app").status_code == 422


class TestContext:

    def test_context_after_turn(self, client):
        record(client, "42", "I prefer dark mode in every app")

        response = client.post("/api/memory/context", json={
            'owner': "42",
            'message': "dark mode"
        })

        assert response.status_code == 200
        data = response.json()
        assert data['has_context'] is True
        assert data['context'] == "[Memory context]\n- I prefer dark mode in every app (semantic)"

    def test_unknown_owner_gets_empty_context(self, client):
        data = client.post("/api/memory/context", json={
            'owner': "nobody",
            'message': "anything at all"
        }).json()

        assert data['context'] == ""
        assert data['has_context'] is False


class TestInspection:

    def test_list_shows_full_content(self, client, store):
        long_text = "I prefer " + "very " * 40 + "dark themes"
        record(client, "42", long_text)

        response = client.get("/api/memory/owners/42")

        assert response.status_code == 200
        items = response.json()
        assert len(items) == 1
        assert items[0]['content'] == long_text
        assert items[0]['sector'] == 'semantic'
        assert items[0]['salience'] == 1.0

    def test_owner_named_like_a_route(self, client):
        record(client, "stats", "I prefer dark mode in every app")

        response = client.get("/api/memory/owners/stats")

        assert response.status_code == 200
        items = response.json()
        assert [item['content'] for item in items] == ["I prefer dark mode in every app"]

    def test_list_does_not_reinforce(self, client, store):
        record(client, "42", "I prefer dark mode in every app")

        client.get("/api/memory/owners/42")

        assert store.list_for_display("42")[0].salience == 1.0

    def test_stats(self, client):
        record(client, "42", "I prefer dark mode in every app")
        record(client, "7", "We watched the football match together")

        response = client.get("/api/memory/stats")

        assert response.status_code == 200
        data = response.json()
        assert data['total_memories'] == 2
        assert data['owners'] == 2
        assert data['config']['decay_rate'] == 0.98

    def test_sweep(self, client):
        record(client, "42", "I prefer dark mode in every app")

        response = client.post("/api/memory/sweep")

        assert response.status_code == 200
        assert response.json() == {'decayed': 0, 'deleted': 0}


class TestService:

    def test_health(self, client):
        data = client.get("/health").json()

        assert data['status'] == 'healthy'
        assert data['service_ready'] is True

    def test_health_reports_sweeper(self, client, monkeypatch):
        sweeper = Mock(running=True, runs=3)
        monkeypatch.setattr(dependencies, 'decay_sweeper', sweeper)

        data = client.get("/health").json()

        assert data['sweeper_running'] is True
        assert data['sweeps_completed'] == 3

    def test_not_ready_is_503(self):
        dependencies.memory_manager = None

        response = TestClient(app).get("/api/memory/stats")

        assert response.status_code == 503

    def test_startup_and_shutdown(self, tmp_path, monkeypatch):
        monkeypatch.setenv('MEMORY_DB_PATH', str(tmp_path / "memory.db"))
        monkeypatch.setenv('MEMORY_SWEEP_INTERVAL', '3600')
        dependencies.memory_manager = None

        with TestClient(app) as client:
            data = client.get("/health").json()
            assert data['service_ready'] is True
            assert data['sweeper_running'] is True

            assert record(client, "42", "I prefer dark mode in every app").status_code == 200

        assert dependencies.memory_manager is None
        assert dependencies.decay_sweeper is None
        assert (tmp_path / "memory.db").exists()
