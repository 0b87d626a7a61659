"""
Tests for query orchestration.

Uses the in-memory store and the scripted gateway; every component is
real except where a failure is injected.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from nelson.orchestration.engine import CLASSIFICATION_FAILED_ANSWER, OrchestrationEngine
from nelson.routing.classifier import QueryClassifier
from nelson.safety.screener import SafetyScreener
from nelson.store.base import MEDICAL_CLASSIFICATIONS, QUERIES, SAFETY_ALERTS, SESSIONS, StoreError


class TestEmergencyRouting:
    """Tests for queries routed to safety screening."""

    @pytest.mark.asyncio
    async def test_emergency_uses_screener(self, orchestrator, session_factory, store, scripted_gateway):
        """Test that an emergency is answered without the diagnostic workflow."""
        session = await session_factory()

        response = await orchestrator.submit_query("My child can't breathe!", session_id=session.id)

        assert response.success
        assert response.urgency_level == "emergency"
        assert "MEDICAL EMERGENCY DETECTED" in response.answer
        assert response.confidence == 1.0
        assert [a.keywords for a in response.safety_alerts] == [["can't breathe"]]
        assert [s.step for s in response.reasoning_steps] == ["safety_monitoring"]
        assert scripted_gateway.calls == []

        alerts = await store.select(SAFETY_ALERTS, {"query_id": response.queryId})
        assert len(alerts) == 2
        assert all(a["alert_type"] == "emergency" for a in alerts)

        stored_session = await store.get(SESSIONS, session.id)
        assert stored_session["risk_level"] == "emergency"

    @pytest.mark.asyncio
    async def test_child_wont_wake_up(self, orchestrator, store):
        """Test an unresponsive child end to end."""
        response = await orchestrator.submit_query("My 2 year old won't wake up")

        assert response.urgency_level == "emergency"
        assert response.safety_alerts[0].keywords == ["won't wake up"]
        assert "Neurological emergency" in response.answer

        query = await store.get(QUERIES, response.queryId)
        assert query["diagnostic_stage"] == "completed"
        assert query["safety_flags"] == ["neurological_emergency"]


class TestRoutineRouting:
    """Tests for queries answered by the diagnostic workflow."""

    @pytest.mark.asyncio
    async def test_routine_runs_workflow(self, orchestrator, session_factory, store, scripted_gateway):
        """Test the full path for a routine query."""
        session = await session_factory(medical_context={"allergies": ["penicillin"]})

        response = await orchestrator.submit_query("mild cough for two days", session_id=session.id)

        assert response.success
        assert response.sessionId == session.id
        assert response.urgency_level == "routine"
        assert response.medical_specialty == "respiratory"
        assert response.safety_alerts == []
        assert len(response.reasoning_steps) == 6
        assert len(scripted_gateway.calls) == 6
        assert "Viral URI" in response.answer

        query = await store.get(QUERIES, response.queryId)
        assert query["diagnostic_stage"] == "completed"
        assert query["answer"] == response.answer
        assert query["complexity_score"] == 2
        assert query["safety_flags"] == ["Avoid honey under 12 months"]

        classifications = await store.select(MEDICAL_CLASSIFICATIONS, {"query_id": response.queryId})
        assert classifications[0]["workflow_type"] == "specialty"

        stored_session = await store.get(SESSIONS, session.id)
        context = stored_session["medical_context"]
        assert context["allergies"] == ["penicillin"]
        assert context["last_diagnosis"] == "Viral URI"
        assert len(context["session_history"]) == 1
        assert "last_updated" in context
        assert stored_session["risk_level"] == "routine"

    @pytest.mark.asyncio
    async def test_empty_message_is_classified(self, orchestrator):
        """Test that an empty message still gets an answer."""
        response = await orchestrator.submit_query("")

        assert response.success
        assert response.urgency_level == "routine"
        assert response.medical_specialty == "general_pediatrics"


class TestSessionResolution:
    """Tests for session lookup and creation."""

    @pytest.mark.asyncio
    async def test_new_session_for_user(self, orchestrator, store):
        """Test that a user without a session gets one."""
        response = await orchestrator.submit_query("mild cough", user_id="user-1")

        session = await store.get(SESSIONS, response.sessionId)
        assert session["user_id"] == "user-1"
        assert session["medical_context"]["last_diagnosis"] == "Viral URI"

    @pytest.mark.asyncio
    async def test_unknown_session_without_user_is_anonymous(self, orchestrator, store):
        """Test that an unknown session id with no user runs anonymously."""
        response = await orchestrator.submit_query("mild cough", session_id="no-such-session")

        assert response.success
        assert response.sessionId is None
        query = await store.get(QUERIES, response.queryId)
        assert query["session_id"] is None
        assert await store.select(SESSIONS) == []

    @pytest.mark.asyncio
    async def test_unknown_session_with_user_creates_one(self, orchestrator, store):
        response = await orchestrator.submit_query("mild cough", session_id="no-such-session", user_id="user-2")

        assert response.sessionId not in (None, "no-such-session")
        assert (await store.get(SESSIONS, response.sessionId))["user_id"] == "user-2"


class TestFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_classifier_failure(self, store, workflow_engine, context_manager):
        """Test that a classifier failure returns an error response."""
        classifier = MagicMock()
        classifier.classify = AsyncMock(side_effect=RuntimeError("classifier exploded"))
        orchestrator = OrchestrationEngine(
            store, classifier, SafetyScreener(store), workflow_engine, context_manager,
        )

        response = await orchestrator.submit_query("mild cough")

        assert not response.success
        assert response.error == "Classification failed"
        assert response.answer == CLASSIFICATION_FAILED_ANSWER
        query = await store.get(QUERIES, response.queryId)
        assert query["diagnostic_stage"] == "error"

    @pytest.mark.asyncio
    async def test_workflow_failure_marks_error_and_raises(self, store, context_manager):
        """Test that a store failure inside the workflow propagates."""
        workflow_engine = MagicMock()
        workflow_engine.run = AsyncMock(side_effect=StoreError("store unavailable"))
        orchestrator = OrchestrationEngine(
            store, QueryClassifier(store), SafetyScreener(store), workflow_engine, context_manager,
        )

        with pytest.raises(StoreError):
            await orchestrator.submit_query("mild cough")

        queries = await store.select(QUERIES)
        assert queries[0]["diagnostic_stage"] == "error"

    @pytest.mark.asyncio
    async def test_classification_record_failure_is_tolerated(self, orchestrator, store):
        """Test that a failed classification write does not fail the query."""
        original_insert = store.insert

        async def flaky_insert(table, record):
            if table == MEDICAL_CLASSIFICATIONS:
                raise StoreError("down")
            return await original_insert(table, record)

        store.insert = flaky_insert

        response = await orchestrator.submit_query("mild cough")

        assert response.success
        assert await store.select(MEDICAL_CLASSIFICATIONS) == []
