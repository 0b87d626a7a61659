"""
Tests for the FastAPI endpoints.

The application is built with in-memory services so the lifespan never
reaches the network.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from api.dependencies import build_services
from api.main import create_app
from nelson.config import Settings
from nelson.models.enums import AlertType
from nelson.models.records import DiagnosticWorkflow, SafetyAlert, Session
from nelson.store.base import DIAGNOSTIC_WORKFLOWS, MEDICAL_CHUNKS, SAFETY_ALERTS, SESSIONS


@pytest.fixture
def api_embedder():
    """Embedder without an outbound client."""
    embedder = MagicMock(spec=["embed"])
    embedder.embed = AsyncMock(return_value=[1.0, 0.0, 0.0])
    return embedder


@pytest.fixture
def services(store, scripted_gateway, api_embedder):
    return build_services(Settings(), store=store, gateway=scripted_gateway, embedder=api_embedder)


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def session_id(store):
    """Id of a session stored directly in the in-memory store."""
    session = Session(user_id="user-1", medical_context={"allergies": ["penicillin"]})
    store._tables[SESSIONS][session.id] = session.model_dump(mode="json")
    return session.id


class TestHealth:
    """Tests for health endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"


class TestQueryEndpoint:
    """Tests for POST /api/query."""

    def test_routine_query(self, client, session_id):
        """Test that a routine query returns the workflow answer."""
        response = client.post("/api/query", json={"message": "mild cough for two days", "sessionId": session_id})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["sessionId"] == session_id
        assert body["queryId"]
        assert body["urgency_level"] == "routine"
        assert body["medical_specialty"] == "respiratory"
        assert len(body["reasoning_steps"]) == 6
        assert body["error"] is None

    def test_emergency_query(self, client):
        """Test that an emergency returns the safety response and alert."""
        body = client.post("/api/query", json={"message": "He is having a seizure"}).json()

        assert body["urgency_level"] == "emergency"
        assert body["safety_alerts"][0]["keywords"] == ["seizure"]
        assert "MEDICAL EMERGENCY DETECTED" in body["answer"]

    def test_missing_message_is_accepted(self, client):
        body = client.post("/api/query", json={}).json()
        assert body["success"] is True
        assert body["medical_specialty"] == "general_pediatrics"

    def test_malformed_body(self, client):
        """Test that a wrongly typed field is a validation error."""
        response = client.post("/api/query", json={"message": ["not", "text"]})

        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_unexpected_error(self, services):
        """Test that unhandled errors become a 500 with an error body."""
        services.orchestrator.submit_query = AsyncMock(side_effect=RuntimeError("store exploded"))

        with TestClient(create_app(services), raise_server_exceptions=False) as client:
            response = client.post("/api/query", json={"message": "cough"})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "store exploded"}


class TestContextEndpoint:
    """Tests for POST /api/context."""

    def test_get(self, client, session_id):
        body = client.post("/api/context", json={"operation": "get", "sessionId": session_id}).json()

        assert body["success"] is True
        assert body["session_id"] == session_id
        assert body["context"]["medical_context"] == {"allergies": ["penicillin"]}
        assert body["context"]["context_age"] == "unknown"

    def test_update(self, client, session_id):
        """Test that update merges and returns the new context."""
        body = client.post("/api/context", json={
            "operation": "update",
            "sessionId": session_id,
            "newContext": {"medical_context": {"symptoms": ["rash"]}, "risk_level": "urgent"},
        }).json()

        context = body["updated_context"]
        assert context["medical_context"]["allergies"] == ["penicillin"]
        assert context["medical_context"]["symptoms"] == ["rash"]
        assert context["risk_level"] == "urgent"

    def test_update_invalid_context(self, client, session_id):
        response = client.post("/api/context", json={
            "operation": "update",
            "sessionId": session_id,
            "newContext": {"risk_level": "catastrophic"},
        })
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_summarize_without_history(self, client, session_id):
        body = client.post("/api/context", json={"operation": "summarize", "sessionId": session_id}).json()

        assert body["success"] is True
        assert body["summary"] is None
        assert body["message"] == "No conversation history to summarize"

    def test_summarize_after_query(self, client, session_id):
        client.post("/api/query", json={"message": "mild cough", "sessionId": session_id})

        body = client.post("/api/context", json={"operation": "summarize", "sessionId": session_id}).json()

        assert body["summary"]["session_id"] == session_id
        assert "cough" in body["summary"]["key_symptoms"]

    def test_clear(self, client, session_id):
        body = client.post("/api/context", json={"operation": "clear", "sessionId": session_id}).json()

        assert body["message"] == "Medical context cleared successfully"
        assert body["cleared_at"]
        context = client.post("/api/context", json={"operation": "get", "sessionId": session_id}).json()
        assert context["context"]["medical_context"] == {}

    def test_invalid_operation(self, client, session_id):
        response = client.post("/api/context", json={"operation": "delete", "sessionId": session_id})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid operation: delete"}

    def test_unknown_session(self, client):
        response = client.post("/api/context", json={"operation": "get", "sessionId": "missing"})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Session not found"}


class TestRecordEndpoints:
    """Tests for workflow, alert, and knowledge endpoints."""

    def test_get_workflow(self, client, store):
        workflow = DiagnosticWorkflow(query_id="q1")
        store._tables[DIAGNOSTIC_WORKFLOWS][workflow.id] = workflow.model_dump(mode="json")

        body = client.get(f"/api/workflows/{workflow.id}").json()

        assert body["workflow"]["query_id"] == "q1"
        assert body["workflow"]["current_step"] == 1

    def test_missing_workflow(self, client):
        assert client.get("/api/workflows/missing").status_code == 404

    def test_acknowledge_alert(self, client, store):
        alert = SafetyAlert(alert_type=AlertType.HIGH_RISK, alert_message="HIGH PRIORITY", severity_score=8)
        store._tables[SAFETY_ALERTS][alert.id] = alert.model_dump(mode="json")

        body = client.post(f"/api/safety-alerts/{alert.id}/acknowledge", json={"acknowledgedBy": "nurse-1"}).json()

        assert body["alert"]["acknowledged"] is True
        assert body["alert"]["acknowledged_by"] == "nurse-1"

    def test_acknowledge_without_body(self, client, store):
        alert = SafetyAlert(alert_type=AlertType.EMERGENCY, alert_message="EMERGENCY", severity_score=10)
        store._tables[SAFETY_ALERTS][alert.id] = alert.model_dump(mode="json")

        body = client.post(f"/api/safety-alerts/{alert.id}/acknowledge").json()

        assert body["alert"]["acknowledged"] is True
        assert body["alert"]["acknowledged_by"] is None

    def test_acknowledge_missing_alert(self, client):
        response = client.post("/api/safety-alerts/missing/acknowledge")
        assert response.status_code == 404

    def test_knowledge_search(self, client, store, sample_chunks):
        for chunk in sample_chunks:
            store._tables[MEDICAL_CHUNKS][chunk.id] = chunk.model_dump(mode="json")

        body = client.post("/api/knowledge/search", json={"text": "cough", "top_k": 2}).json()

        assert [p["id"] for p in body["passages"]] == ["chunk-cough", "chunk-asthma"]
        assert body["citations"][0]["chapter"] == "Respiratory Infections"

    def test_knowledge_search_limit(self, client):
        response = client.post("/api/knowledge/search", json={"text": "cough", "top_k": 100})
        assert response.status_code == 422
