"""
test_api.py — Tests for the HTTP surface: trigger binding, errors, health.

Run with:
    pytest tests/test_api.py -v
"""

from __future__ import annotations

import asyncio

import pytest
from fastapi import BackgroundTasks, FastAPI
from fastapi.testclient import TestClient

from backend.app.api.v1.triggers import TriggerRequest, dispatch_trigger
from backend.app.api.v1.triggers import router as trigger_router
from backend.app.core.config import settings
from backend.app.core.errors import register_error_handlers
from backend.app.notifications.dispatcher import EventDispatcher


@pytest.fixture
def client(handlers) -> TestClient:
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(trigger_router)
    app.state.dispatcher = EventDispatcher(handlers)
    return TestClient(app)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Trigger binding
# ═══════════════════════════════════════════════════════════════════════════

class TestTriggerRoute:

    def test_list_kinds(self, client):
        resp = client.get("/api/v1/triggers")
        assert resp.status_code == 200
        assert "chat_message.created" in resp.json()["kinds"]
        assert len(resp.json()["kinds"]) == 5

    def test_dispatch_accepted(self, client, gateway):
        resp = client.post("/api/v1/triggers/report.created", json={
            "params": {"reportId": "r-1"},
            "data": {"userId": "resident-1", "type": "Flood"},
        })
        assert resp.status_code == 202
        assert resp.json() == {"status": "accepted", "kind": "report.created", "event_id": "r-1"}
        assert {m.token for m in gateway.all_messages} == {"admin-1-web", "admin-2-web", "hybrid-1-web"}

    def test_fan_out_runs_after_response(self, handlers, gateway):
        tasks = BackgroundTasks()
        body = TriggerRequest(
            params={"reportId": "r-1"},
            data={"userId": "resident-1", "type": "Flood"},
        )

        accepted = asyncio.run(dispatch_trigger(
            "report.created", body, tasks, dispatcher=EventDispatcher(handlers),
        ))
        assert accepted.event_id == "r-1"
        assert len(tasks.tasks) == 1
        assert gateway.all_messages == []

        asyncio.run(tasks())
        assert len(gateway.all_messages) == 3

    def test_bad_document_still_accepted(self, client, gateway):
        resp = client.post("/api/v1/triggers/chat_message.created", json={"params": {"messageId": "m"}})
        assert resp.status_code == 202
        assert gateway.all_messages == []

    def test_unknown_kind(self, client):
        resp = client.post("/api/v1/triggers/report.deleted", json={})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "UNKNOWN_EVENT"

    def test_secret_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "TRIGGER_SHARED_SECRET", "s3cret")
        body = {"params": {"announcementId": "a-1"}, "data": {"type": "advisory"}}

        resp = client.post("/api/v1/triggers/announcement.created", json=body)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHENTICATED"

        resp = client.post(
            "/api/v1/triggers/announcement.created", json=body,
            headers={"X-Trigger-Secret": "s3cret"},
        )
        assert resp.status_code == 202


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Application shell
# ═══════════════════════════════════════════════════════════════════════════

class TestApplication:

    @pytest.fixture
    def app_client(self) -> TestClient:
        from backend.app.main import app
        # no lifespan: the engine and dispatcher are never built
        return TestClient(app)

    def test_root(self, app_client):
        resp = app_client.get("/")
        assert resp.status_code == 200
        assert resp.json()["push_provider"] == settings.PUSH_PROVIDER

    def test_liveness(self, app_client):
        resp = app_client.get("/health/live")
        assert resp.json() == {"status": "alive"}
        assert "X-Request-ID" in resp.headers

    def test_readiness_without_database(self, app_client):
        resp = app_client.get("/health/ready")
        assert resp.status_code == 503
        components = {c["name"]: c for c in resp.json()["components"]}
        assert components["database"]["status"] == "unhealthy"
        assert "push_gateway" in components
